from sourcing.models.product import Product
from sourcing.models.queue_item import QueueItem
from sourcing.models.image_hash import ImageHash
from sourcing.models.audit_log import AuditLog

__all__ = ["Product", "QueueItem", "ImageHash", "AuditLog"]
