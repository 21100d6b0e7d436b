from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Text, UniqueConstraint, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


# Reservation statuses that occupy the user's one order for the day.
ACTIVE_STATUSES = ("held", "confirmed")


class Locations(Base):
    __tablename__ = 'locations'

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))

    time_slots = relationship('TimeSlots', back_populates='location')


class TimeSlots(Base):
    __tablename__ = 'time_slots'
    __table_args__ = (
        UniqueConstraint('location_id', 'date', 'period', 'start_time'),
        CheckConstraint('remaining >= 0 AND remaining <= capacity', name='ck_time_slots_remaining'),
    )

    id = Column(Integer, primary_key=True)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)
    period = Column(Text, nullable=False)
    start_time = Column(Text, nullable=False)
    capacity = Column(Integer, nullable=False)
    remaining = Column(Integer, nullable=False)

    location = relationship('Locations', back_populates='time_slots')
    reservations = relationship('Reservations', back_populates='slot')


class Reservations(Base):
    __tablename__ = 'reservations'
    __table_args__ = (
        Index(
            'uq_reservations_user_day_active',
            'user_id',
            'date',
            unique=True,
            sqlite_where=text("status IN ('held', 'confirmed')"),
            postgresql_where=text("status IN ('held', 'confirmed')"),
        ),
        Index('ix_reservations_status_held_until', 'status', 'held_until'),
    )

    id = Column(Text, primary_key=True)
    user_id = Column(Text, nullable=False)
    slot_id = Column(ForeignKey('time_slots.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'held'"))
    held_until = Column(Text, nullable=False)
    order_id = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    confirmed_at = Column(Text)
    released_at = Column(Text)

    slot = relationship('TimeSlots', back_populates='reservations')
