"""
SQLAlchemy models for the person graph: people, parent-child edges and unions
"""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy.dialects.postgresql import UUID as POSTGRESQL_UUID
from sqlalchemy.types import CHAR, TypeDecorator

from . import db


class UUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise uses CHAR(36)
    to store the UUID string.
    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(POSTGRESQL_UUID())
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Sex(str, enum.Enum):
    MALE = 'Male'
    FEMALE = 'Female'
    UNKNOWN = 'Unknown'


class DatePrecision(str, enum.Enum):
    EXACT = 'exact'
    ABOUT = 'about'
    BETWEEN = 'between'
    BEFORE = 'before'
    AFTER = 'after'
    UNKNOWN = 'unknown'


class ParentChildType(str, enum.Enum):
    BIOLOGICAL = 'biological'
    ADOPTED = 'adopted'
    STEP = 'step'
    FOSTER = 'foster'
    UNKNOWN = 'unknown'


class UnionType(str, enum.Enum):
    MARRIAGE = 'marriage'
    CIVIL_UNION = 'civil_union'
    ENGAGEMENT = 'engagement'
    PARTNERSHIP = 'partnership'
    UNKNOWN = 'unknown'


def _enum_values(enum_class):
    return [member.value for member in enum_class]


class Org(db.Model):
    """Tenant owning a family tree"""
    __tablename__ = 'orgs'

    id = db.Column(UUID(), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(UTC))

    def __repr__(self):
        return f'<Org {self.name}>'


class Person(db.Model):
    """Identity node of the family graph"""
    __tablename__ = 'persons'

    id = db.Column(UUID(), primary_key=True, default=uuid.uuid4)
    org_id = db.Column(UUID(), db.ForeignKey('orgs.id'), nullable=False)

    primary_name = db.Column(db.String(255))
    sex = db.Column(db.Enum(Sex, values_callable=_enum_values, name='person_sex'),
                    nullable=False, default=Sex.UNKNOWN)

    birth_date = db.Column(db.Date)
    birth_precision = db.Column(db.Enum(DatePrecision, values_callable=_enum_values, name='date_precision'),
                                nullable=False, default=DatePrecision.UNKNOWN)
    death_date = db.Column(db.Date)
    death_precision = db.Column(db.Enum(DatePrecision, values_callable=_enum_values, name='date_precision'),
                                nullable=False, default=DatePrecision.UNKNOWN)
    is_living = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(UTC))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    __table_args__ = (
        db.Index('idx_persons_org', 'org_id', 'is_deleted'),
    )

    def __repr__(self):
        return f'<Person {self.primary_name}>'


class ParentChild(db.Model):
    """Directed edge from a parent to a child"""
    __tablename__ = 'parent_child'

    id = db.Column(UUID(), primary_key=True, default=uuid.uuid4)
    parent_id = db.Column(UUID(), db.ForeignKey('persons.id'), nullable=False)
    child_id = db.Column(UUID(), db.ForeignKey('persons.id'), nullable=False)
    relationship_type = db.Column(db.Enum(ParentChildType, values_callable=_enum_values, name='parent_child_type'),
                                  nullable=False, default=ParentChildType.BIOLOGICAL)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(UTC))

    parent = db.relationship('Person', foreign_keys=[parent_id])
    child = db.relationship('Person', foreign_keys=[child_id])

    __table_args__ = (
        db.CheckConstraint('parent_id <> child_id', name='ck_parent_child_no_self_loop'),
        db.UniqueConstraint('parent_id', 'child_id', name='uq_parent_child_pair'),
        db.Index('idx_parent_child_parent', 'parent_id'),
        db.Index('idx_parent_child_child', 'child_id'),
    )

    def __repr__(self):
        return f'<ParentChild {self.parent_id} -> {self.child_id}>'


class Union(db.Model):
    """Marriage or partnership grouping two or more persons"""
    __tablename__ = 'unions'

    id = db.Column(UUID(), primary_key=True, default=uuid.uuid4)
    org_id = db.Column(UUID(), db.ForeignKey('orgs.id'), nullable=False)
    type = db.Column(db.Enum(UnionType, values_callable=_enum_values, name='union_type'),
                     nullable=False, default=UnionType.MARRIAGE)

    start_date = db.Column(db.Date)
    start_precision = db.Column(db.Enum(DatePrecision, values_callable=_enum_values, name='date_precision'),
                                nullable=False, default=DatePrecision.UNKNOWN)
    end_date = db.Column(db.Date)
    end_precision = db.Column(db.Enum(DatePrecision, values_callable=_enum_values, name='date_precision'),
                              nullable=False, default=DatePrecision.UNKNOWN)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(UTC))

    members = db.relationship('UnionMember', back_populates='union', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Union {self.id} ({self.type})>'


class UnionMember(db.Model):
    """Membership of a person in a union"""
    __tablename__ = 'union_members'

    id = db.Column(UUID(), primary_key=True, default=uuid.uuid4)
    union_id = db.Column(UUID(), db.ForeignKey('unions.id'), nullable=False)
    person_id = db.Column(UUID(), db.ForeignKey('persons.id'), nullable=False)
    role = db.Column(db.String(50), nullable=False, default='Spouse')
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    union = db.relationship('Union', back_populates='members')
    person = db.relationship('Person')

    __table_args__ = (
        db.UniqueConstraint('union_id', 'person_id', name='uq_union_member'),
        db.Index('idx_union_members_person', 'person_id'),
    )

    def __repr__(self):
        return f'<UnionMember {self.person_id} in {self.union_id}>'
