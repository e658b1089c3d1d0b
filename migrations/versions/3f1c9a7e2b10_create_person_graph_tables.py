"""Create person graph tables

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3f1c9a7e2b10'
down_revision = None
branch_labels = None
depends_on = None


person_sex = postgresql.ENUM('Male', 'Female', 'Unknown', name='person_sex', create_type=False)
date_precision = postgresql.ENUM('exact', 'about', 'between', 'before', 'after', 'unknown',
                                 name='date_precision', create_type=False)
parent_child_type = postgresql.ENUM('biological', 'adopted', 'step', 'foster', 'unknown',
                                    name='parent_child_type', create_type=False)
union_type = postgresql.ENUM('marriage', 'civil_union', 'engagement', 'partnership', 'unknown',
                             name='union_type', create_type=False)

ENUM_TYPES = [person_sex, date_precision, parent_child_type, union_type]


def upgrade():
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'orgs',
        sa.Column('id', postgresql.UUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'persons',
        sa.Column('id', postgresql.UUID(), nullable=False),
        sa.Column('org_id', postgresql.UUID(), nullable=False),
        sa.Column('primary_name', sa.String(length=255), nullable=True),
        sa.Column('sex', person_sex, nullable=False),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('birth_precision', date_precision, nullable=False),
        sa.Column('death_date', sa.Date(), nullable=True),
        sa.Column('death_precision', date_precision, nullable=False),
        sa.Column('is_living', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_persons_org', 'persons', ['org_id', 'is_deleted'], unique=False)

    op.create_table(
        'parent_child',
        sa.Column('id', postgresql.UUID(), nullable=False),
        sa.Column('parent_id', postgresql.UUID(), nullable=False),
        sa.Column('child_id', postgresql.UUID(), nullable=False),
        sa.Column('relationship_type', parent_child_type, nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('parent_id <> child_id', name='ck_parent_child_no_self_loop'),
        sa.ForeignKeyConstraint(['parent_id'], ['persons.id']),
        sa.ForeignKeyConstraint(['child_id'], ['persons.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('parent_id', 'child_id', name='uq_parent_child_pair'),
    )
    op.create_index('idx_parent_child_parent', 'parent_child', ['parent_id'], unique=False)
    op.create_index('idx_parent_child_child', 'parent_child', ['child_id'], unique=False)

    op.create_table(
        'unions',
        sa.Column('id', postgresql.UUID(), nullable=False),
        sa.Column('org_id', postgresql.UUID(), nullable=False),
        sa.Column('type', union_type, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('start_precision', date_precision, nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('end_precision', date_precision, nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['orgs.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'union_members',
        sa.Column('id', postgresql.UUID(), nullable=False),
        sa.Column('union_id', postgresql.UUID(), nullable=False),
        sa.Column('person_id', postgresql.UUID(), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['union_id'], ['unions.id']),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('union_id', 'person_id', name='uq_union_member'),
    )
    op.create_index('idx_union_members_person', 'union_members', ['person_id'], unique=False)


def downgrade():
    op.drop_index('idx_union_members_person', table_name='union_members')
    op.drop_table('union_members')
    op.drop_table('unions')
    op.drop_index('idx_parent_child_child', table_name='parent_child')
    op.drop_index('idx_parent_child_parent', table_name='parent_child')
    op.drop_table('parent_child')
    op.drop_index('idx_persons_org', table_name='persons')
    op.drop_table('persons')
    op.drop_table('orgs')

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
