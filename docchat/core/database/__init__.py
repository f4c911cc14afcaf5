from docchat.core.database.connection import init_db, get_db, create_all
from docchat.core.database.models import Base, File, DocumentChunk

__all__ = ["init_db", "get_db", "create_all", "Base", "File", "DocumentChunk"]
