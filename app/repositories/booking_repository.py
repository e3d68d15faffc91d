from typing import Any, Optional

from sqlalchemy import func, select

from app.models.booking import Booking
from app.models.contact import Contact
from app.repositories.base import TenantScopedRepository


class BookingRepository(TenantScopedRepository):
    """Encapsulates queries against the ``bookings`` table."""

    async def get_by_uid(self, uid: str) -> Optional[Booking]:
        result = await self._db.execute(
            select(Booking).where(
                Booking.tenant_id == self._tenant_id,
                Booking.cal_booking_uid == uid,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> Booking:
        booking = Booking(tenant_id=self._tenant_id, **kwargs)
        self._db.add(booking)
        await self._db.flush()
        return booking

    async def update(self, booking: Booking, **values: Any) -> Booking:
        for key, value in values.items():
            setattr(booking, key, value)
        await self._db.flush()
        return booking

    async def find_contact_id_by_email(self, email: str) -> Optional[Any]:
        result = await self._db.execute(
            select(Contact.id)
            .where(
                Contact.tenant_id == self._tenant_id,
                func.lower(Contact.email) == email.lower(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()
