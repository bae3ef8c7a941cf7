"""Declared tables of the tyre management database.

This module is the single source of truth for the schema.  Column names,
lengths, index names and status literals match what deployed databases
already contain, including their inconsistent casing (``costCentre`` next to
``cost_centre``, ``Department`` next to ``department``); renaming any of them
would turn an existing column into a "missing" one.

Two profiles exist.  The standard profile is the seven tables the
application uses.  The extended profile adds ``suppliers``, ``requestimages``
and ``tiredetails``, near-duplicates created by an older initialisation path
that some deployments still carry.
"""

from __future__ import annotations

from schema_reconciler.config import SchemaProfile
from schema_reconciler.models.schema import (
    ColumnSpec,
    ColumnType,
    ForeignKeySpec,
    IndexSpec,
    OnDelete,
    TableSpec,
)

REQUEST_STATUSES: tuple[str, ...] = (
    "pending",
    "supervisor approved",
    "technical-manager approved",
    "engineer approved",
    "customer-officer approved",
    "approved",
    "rejected",
    "supervisor rejected",
    "technical-manager rejected",
    "engineer rejected",
    "customer-officer rejected",
    "complete",
    "order placed",
    "order cancelled",
)

# ---------------------------------------------------------------------------
# Column helpers
# ---------------------------------------------------------------------------


def _id(*, autoincrement: bool = True) -> ColumnSpec:
    return ColumnSpec(
        name="id",
        type=ColumnType.INTEGER,
        nullable=False,
        primary_key=True,
        autoincrement=autoincrement,
    )


def _int(name: str, *, nullable: bool = True) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.INTEGER, nullable=nullable)


def _varchar(name: str, length: int, *, nullable: bool = True) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.STRING, length=length, nullable=nullable)


def _text(name: str, *, nullable: bool = True) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.TEXT, nullable=nullable)


def _decimal(name: str, precision: int = 10, scale: int = 2) -> ColumnSpec:
    return ColumnSpec(name=name, type=ColumnType.DECIMAL, precision=precision, scale=scale)


def _datetime(name: str, *, nullable: bool = True, default_now: bool = False) -> ColumnSpec:
    return ColumnSpec(
        name=name,
        type=ColumnType.TIMESTAMP,
        nullable=nullable,
        default_current_timestamp=default_now,
    )


def _index(name: str, *columns: str, unique: bool = False) -> IndexSpec:
    return IndexSpec(name=name, columns=columns, unique=unique)


def _fk(column: str, table: str, on_delete: OnDelete = OnDelete.NONE) -> ForeignKeySpec:
    return ForeignKeySpec(column=column, references_table=table, on_delete=on_delete)


# ---------------------------------------------------------------------------
# Standard profile
# ---------------------------------------------------------------------------

USERS = TableSpec(
    name="users",
    columns=(
        _id(),
        _varchar("azure_id", 100, nullable=False),
        _varchar("email", 255, nullable=False),
        _varchar("name", 255),
        _varchar("role", 50),
        _varchar("costCentre", 100),
        _varchar("department", 100),
    ),
    indexes=(
        # Inline UNIQUE constraints are named after their column by MySQL.
        _index("azure_id", "azure_id", unique=True),
        _index("email", "email", unique=True),
        _index("idx_email", "email"),
        _index("idx_azure_id", "azure_id"),
        _index("idx_role", "role"),
    ),
)

VEHICLES = TableSpec(
    name="vehicles",
    columns=(
        _id(),
        _int("registeredBy", nullable=False),
        _varchar("vehicleNumber", 50, nullable=False),
        _varchar("make", 50),
        _varchar("model", 50),
        _varchar("type", 50),
        _varchar("status", 20),
        _varchar("cost_centre", 100),
        _varchar("department", 100),
    ),
    indexes=(
        _index("vehicleNumber", "vehicleNumber", unique=True),
        _index("idx_vehicle_number", "vehicleNumber"),
        _index("idx_registered_by", "registeredBy"),
    ),
    foreign_keys=(_fk("registeredBy", "users"),),
)

SUPPLIER = TableSpec(
    name="supplier",
    columns=(
        _id(),
        _varchar("name", 100, nullable=False),
        _varchar("email", 50, nullable=False),
        _varchar("phone", 20, nullable=False),
        _text("address"),
        _varchar("formsfree_key", 100, nullable=False),
    ),
    indexes=(
        _index("idx_supplier_email", "email"),
        _index("idx_supplier_name", "name"),
    ),
)


def _request_columns() -> tuple[ColumnSpec, ...]:
    """Columns shared by ``requests`` and its ``requestbackup`` copy."""
    return (
        _int("userId", nullable=False),
        _int("vehicleId", nullable=False),
        _varchar("vehicleNumber", 50, nullable=False),
        _int("quantity", nullable=False),
        _int("tubesQuantity", nullable=False),
        _varchar("tireSize", 50, nullable=False),
        _text("requestReason", nullable=False),
        _varchar("requesterName", 100, nullable=False),
        _varchar("requesterEmail", 100, nullable=False),
        _varchar("requesterPhone", 20, nullable=False),
        _varchar("vehicleBrand", 50, nullable=False),
        _varchar("vehicleModel", 50, nullable=False),
        ColumnSpec(name="lastReplacementDate", type=ColumnType.DATE, nullable=False),
        _varchar("existingTireMake", 100, nullable=False),
        _varchar("tireSizeRequired", 50, nullable=False),
        _int("presentKmReading", nullable=False),
        _int("previousKmReading", nullable=False),
        _varchar("tireWearPattern", 100, nullable=False),
        _text("comments"),
        ColumnSpec(
            name="status",
            type=ColumnType.ENUM,
            values=REQUEST_STATUSES,
            default="pending",
        ),
        _datetime("submittedAt", nullable=False),
        _text("supervisor_notes"),
        _text("technical_manager_note"),
        _text("engineer_note"),
        _text("customer_officer_note"),
        _int("supervisorId", nullable=False),
        _int("technical_manager_id"),
        _int("supervisor_decision_by"),
        _int("engineer_decision_by"),
        _int("customer_officer_decision_by"),
        _varchar("deliveryOfficeName", 100),
        _varchar("deliveryStreetName", 255),
        _varchar("deliveryTown", 100),
        _decimal("totalPrice"),
        _int("warrantyDistance"),
        ColumnSpec(name="tireWearIndicatorAppeared", type=ColumnType.BOOLEAN, default=False),
        _varchar("Department", 100),
        _varchar("CostCenter", 100),
        _varchar("supplierName", 255),
        _varchar("supplierEmail", 255),
        _varchar("supplierPhone", 255),
        _varchar("orderNumber", 255),
        _text("orderNotes"),
        _datetime("orderPlacedDate"),
    )


REQUESTS = TableSpec(
    name="requests",
    columns=(_id(), *_request_columns()),
    indexes=(
        _index("idx_user_id", "userId"),
        _index("idx_vehicle_id", "vehicleId"),
        _index("idx_vehicle_number", "vehicleNumber"),
        _index("idx_status", "status"),
        _index("idx_submitted_at", "submittedAt"),
        _index("idx_supervisor_id", "supervisorId"),
    ),
    foreign_keys=(
        _fk("userId", "users"),
        _fk("vehicleId", "vehicles"),
        _fk("supervisorId", "users"),
        _fk("technical_manager_id", "users"),
        _fk("supervisor_decision_by", "users"),
        _fk("engineer_decision_by", "users"),
        _fk("customer_officer_decision_by", "users"),
    ),
)

REQUEST_IMAGES = TableSpec(
    name="request_images",
    columns=(
        _id(),
        _int("requestId", nullable=False),
        _text("imagePath", nullable=False),
        _int("imageIndex", nullable=False),
    ),
    indexes=(
        _index("idx_request_id", "requestId"),
        _index("idx_image_index", "imageIndex"),
    ),
    foreign_keys=(_fk("requestId", "requests", OnDelete.CASCADE),),
)

# Backup tables keep the original primary key values, so ``id`` is not
# auto-incremented, and carry no foreign keys so rows outlive their sources.
REQUEST_BACKUP = TableSpec(
    name="requestbackup",
    columns=(
        _id(autoincrement=False),
        *_request_columns(),
        _datetime("deletedAt", nullable=False, default_now=True),
        _int("deletedBy"),
        _varchar("deletedByRole", 50),
    ),
    indexes=(
        _index("idx_deleted_at", "deletedAt"),
        _index("idx_original_id", "id"),
        _index("idx_vehicle_number", "vehicleNumber"),
        _index("idx_user_id", "userId"),
    ),
    depends_on=("requests",),
)

REQUEST_IMAGES_BACKUP = TableSpec(
    name="request_images_backup",
    columns=(
        _id(autoincrement=False),
        _int("requestId", nullable=False),
        _text("imagePath", nullable=False),
        _int("imageIndex", nullable=False),
        _datetime("deletedAt", nullable=False, default_now=True),
    ),
    indexes=(
        _index("idx_backup_request_id", "requestId"),
        _index("idx_backup_deleted_at", "deletedAt"),
    ),
    depends_on=("request_images",),
)

# ---------------------------------------------------------------------------
# Extended profile (legacy near-duplicates)
# ---------------------------------------------------------------------------

SUPPLIERS = TableSpec(
    name="suppliers",
    columns=(
        _id(),
        _varchar("name", 255, nullable=False),
        _varchar("email", 255),
        _varchar("phone", 255),
        _text("address"),
        _datetime("createdAt", default_now=True),
        _datetime("updatedAt", default_now=True),
    ),
    indexes=(
        _index("idx_name", "name"),
        _index("idx_email", "email"),
    ),
)

REQUESTIMAGES = TableSpec(
    name="requestimages",
    columns=(
        _id(),
        _int("requestId", nullable=False),
        _varchar("imageUrl", 500, nullable=False),
        _datetime("uploadedAt", default_now=True),
    ),
    indexes=(_index("idx_request_id", "requestId"),),
    foreign_keys=(_fk("requestId", "requests", OnDelete.CASCADE),),
)

TIREDETAILS = TableSpec(
    name="tiredetails",
    columns=(
        _id(),
        _int("requestId", nullable=False),
        _varchar("tireSize", 50, nullable=False),
        _varchar("tireBrand", 100),
        _varchar("tireModel", 100),
        _int("quantity", nullable=False),
        _decimal("unitPrice"),
        _decimal("totalPrice"),
    ),
    indexes=(_index("idx_request_id", "requestId"),),
    foreign_keys=(_fk("requestId", "requests", OnDelete.CASCADE),),
)

STANDARD_TABLES: tuple[TableSpec, ...] = (
    USERS,
    VEHICLES,
    SUPPLIER,
    REQUESTS,
    REQUEST_IMAGES,
    REQUEST_BACKUP,
    REQUEST_IMAGES_BACKUP,
)

LEGACY_TABLES: tuple[TableSpec, ...] = (SUPPLIERS, REQUESTIMAGES, TIREDETAILS)


def desired_schema(profile: SchemaProfile = SchemaProfile.STANDARD) -> list[TableSpec]:
    """Return the declared tables for *profile*, in declaration order."""
    if profile is SchemaProfile.EXTENDED:
        return [*STANDARD_TABLES, *LEGACY_TABLES]
    return list(STANDARD_TABLES)


def get_table(name: str) -> TableSpec:
    """Look up a declared table by name across both profiles."""
    for spec in (*STANDARD_TABLES, *LEGACY_TABLES):
        if spec.name == name:
            return spec
    raise KeyError(name)
