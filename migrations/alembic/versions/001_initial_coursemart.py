"""Full coursemart schema: catalogue, users, purchases, access and progress

Revision ID: 001
Revises:
Create Date: 2026-10-19

Tables created:
  - courses               Course name + description
  - course_sections       Ordered sections of a course (UNIQUE course_id, sort_order)
  - lessons               Ordered lessons of a section (UNIQUE section_id, sort_order)
  - products              Sellable bundles, priced in whole dollars
  - course_products       Product ↔ course links
  - users                 Mirror of identity-provider users, soft-deletable
  - purchases             One row per fulfilled payment (UNIQUE payment_session_id)
  - user_course_access    Course grants, one per (user, course)
  - user_lesson_complete  Completed lessons, one per (user, lesson)

PostgreSQL-native ENUM types created:
  - course_section_status public / private
  - lesson_status         public / private / preview
  - product_status        public / private
  - user_role             user / admin

Downgrade: drops all tables and ENUM types in reverse dependency order.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    ]


# ─────────────────────────────────────────────────────────────────────────────
#  UPGRADE
# ─────────────────────────────────────────────────────────────────────────────

def upgrade() -> None:
    # ── 1. PostgreSQL ENUM types ──────────────────────────────────────────────
    # PostgreSQL has no CREATE TYPE IF NOT EXISTS, so we use a DO/EXCEPTION block.
    for name, values in (
        ("course_section_status", ("public", "private")),
        ("lesson_status", ("public", "private", "preview")),
        ("product_status", ("public", "private")),
        ("user_role", ("user", "admin")),
    ):
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(
            f"""
            DO $$ BEGIN
                CREATE TYPE {name} AS ENUM ({labels});
            EXCEPTION WHEN duplicate_object THEN NULL;
            END $$;
            """
        )

    # ── 2. courses ────────────────────────────────────────────────────────────
    op.create_table(
        "courses",
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("course_id", name="pk_courses"),
    )

    # ── 3. course_sections ────────────────────────────────────────────────────
    op.create_table(
        "course_sections",
        sa.Column("section_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(name="course_section_status", create_type=False),
            nullable=False,
            server_default=sa.text("'private'"),
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("section_id", name="pk_course_sections"),
        sa.ForeignKeyConstraint(
            ["course_id"],
            ["courses.course_id"],
            name="fk_course_sections_course_id",
            ondelete="CASCADE",
        ),
        # Two racing appends cannot both take the same position
        sa.UniqueConstraint("course_id", "sort_order", name="uq_course_sections_course_order"),
    )
    op.create_index("ix_course_sections_course_id", "course_sections", ["course_id"])

    # ── 4. lessons ────────────────────────────────────────────────────────────
    op.create_table(
        "lessons",
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("section_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("youtube_video_id", sa.String(64), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(name="lesson_status", create_type=False),
            nullable=False,
            server_default=sa.text("'private'"),
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("lesson_id", name="pk_lessons"),
        sa.ForeignKeyConstraint(
            ["section_id"],
            ["course_sections.section_id"],
            name="fk_lessons_section_id",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("section_id", "sort_order", name="uq_lessons_section_order"),
    )
    op.create_index("ix_lessons_section_id", "lessons", ["section_id"])

    # ── 5. products + course_products ─────────────────────────────────────────
    op.create_table(
        "products",
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=False),
        sa.Column("price_in_dollars", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(name="product_status", create_type=False),
            nullable=False,
            server_default=sa.text("'private'"),
        ),
        sa.Column("payment_product_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("product_id", name="pk_products"),
        sa.CheckConstraint("price_in_dollars >= 0", name="ck_products_price_non_negative"),
    )

    op.create_table(
        "course_products",
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("course_id", "product_id", name="pk_course_products"),
        sa.ForeignKeyConstraint(
            ["course_id"],
            ["courses.course_id"],
            name="fk_course_products_course_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["products.product_id"],
            name="fk_course_products_product_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_course_products_product_id", "course_products", ["product_id"])

    # ── 6. users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("external_user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column(
            "role",
            postgresql.ENUM(name="user_role", create_type=False),
            nullable=False,
            server_default=sa.text("'user'"),
        ),
        sa.Column("image_url", sa.String(500), nullable=True),
        # Tombstone: PII is redacted when set
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id", name="pk_users"),
        sa.UniqueConstraint("external_user_id", name="uq_users_external_user_id"),
    )

    # ── 7. purchases ──────────────────────────────────────────────────────────
    op.create_table(
        "purchases",
        sa.Column("purchase_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("payment_session_id", sa.String(255), nullable=False),
        sa.Column("price_paid_in_cents", sa.Integer(), nullable=False),
        sa.Column(
            "product_details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("purchase_id", name="pk_purchases"),
        # Replayed payment webhooks insert nothing
        sa.UniqueConstraint("payment_session_id", name="uq_purchases_payment_session_id"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.user_id"],
            name="fk_purchases_user_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["products.product_id"],
            name="fk_purchases_product_id",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_purchases_user_id", "purchases", ["user_id"])
    op.create_index("ix_purchases_created_at", "purchases", ["created_at"])

    # ── 8. user_course_access + user_lesson_complete ──────────────────────────
    op.create_table(
        "user_course_access",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("user_id", "course_id", name="pk_user_course_access"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.user_id"],
            name="fk_user_course_access_user_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["course_id"], ["courses.course_id"],
            name="fk_user_course_access_course_id", ondelete="CASCADE",
        ),
    )

    op.create_table(
        "user_lesson_complete",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("user_id", "lesson_id", name="pk_user_lesson_complete"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.user_id"],
            name="fk_user_lesson_complete_user_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["lesson_id"], ["lessons.lesson_id"],
            name="fk_user_lesson_complete_lesson_id", ondelete="CASCADE",
        ),
    )


# ─────────────────────────────────────────────────────────────────────────────
#  DOWNGRADE
# ─────────────────────────────────────────────────────────────────────────────

def downgrade() -> None:
    # Drop tables in reverse FK dependency order
    op.drop_table("user_lesson_complete")
    op.drop_table("user_course_access")
    op.drop_table("purchases")
    op.drop_table("users")
    op.drop_table("course_products")
    op.drop_table("products")
    op.drop_table("lessons")
    op.drop_table("course_sections")
    op.drop_table("courses")

    # Drop ENUM types (must happen after tables are gone)
    op.execute("DROP TYPE IF EXISTS user_role")
    op.execute("DROP TYPE IF EXISTS product_status")
    op.execute("DROP TYPE IF EXISTS lesson_status")
    op.execute("DROP TYPE IF EXISTS course_section_status")
