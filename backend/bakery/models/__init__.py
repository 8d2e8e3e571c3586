# Import every model module so Base.metadata knows all tables.
from .authz import Base, Permission, Group, GroupPermission, User, UserGroup, UserPermission  # noqa: F401
from .status import Status, StatusRow, ensure_statuses  # noqa: F401
from .catalog import Customer, Cake, Tray, RentableArticle  # noqa: F401
from .order import Order, OrderItem  # noqa: F401
from .event import Event, EventItem  # noqa: F401
from .audit import AuditLog  # noqa: F401
