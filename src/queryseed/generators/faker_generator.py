"""Faker-based data generator."""

from collections.abc import Callable
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from faker import Faker

from queryseed.models import ColumnInfo, TypeCategory


class FakerGenerator:
    """Generate realistic data using Faker library."""

    # Column name → Faker provider method
    COLUMN_MAPPINGS = {
        "email": "email",
        "first_name": "first_name",
        "firstname": "first_name",
        "last_name": "last_name",
        "lastname": "last_name",
        "full_name": "name",
        "name": "name",
        "username": "user_name",
        "user_name": "user_name",
        "company": "company",
        "company_name": "company",
        "phone": "phone_number",
        "phone_number": "phone_number",
        "address": "address",
        "street": "street_address",
        "city": "city",
        "state": "state",
        "country": "country",
        "zip": "zipcode",
        "zipcode": "zipcode",
        "postal_code": "postcode",
        "url": "url",
        "website": "url",
        "title": "job",
        "job_title": "job",
        "code": "bothify",
        "description": "paragraph",
        "bio": "paragraph",
        "notes": "sentence",
    }

    def __init__(self, faker: Faker | None = None, clock: Callable[[], datetime] = datetime.now):
        self.fake = faker or Faker()
        # Dates are drawn from the five years before clock()
        self.clock = clock

    def generate(self, column: ColumnInfo) -> Any:
        """Generate data for a column based on name and type."""
        category = column.type_category

        # Name mapping only makes sense for text columns
        if category == TypeCategory.STRING:
            method = self.COLUMN_MAPPINGS.get(column.name.lower())
            if method is not None:
                if method == "bothify":
                    return self.fake.bothify("??-####").upper()
                return getattr(self.fake, method)()

        return self.generate_for_type(category, column)

    def generate_for_type(self, category: TypeCategory, column: ColumnInfo | None = None) -> Any:
        """Type-based fallback."""
        match category:
            case TypeCategory.INTEGER:
                return self.fake.random_int(min=1, max=100000)
            case TypeCategory.DECIMAL:
                scale = column.numeric_scale if column and column.numeric_scale is not None else 2
                units = self.fake.random_int(min=0, max=self._max_units(column, scale))
                return Decimal(units).scaleb(-scale)
            case TypeCategory.FLOAT:
                return self.fake.pyfloat(min_value=0, max_value=10000, right_digits=4)
            case TypeCategory.BOOLEAN:
                return self.fake.boolean()
            case TypeCategory.DATE:
                return self._moment().date()
            case TypeCategory.DATETIME:
                return self._moment()
            case TypeCategory.TIME:
                return time(
                    self.fake.random_int(0, 23), self.fake.random_int(0, 59), self.fake.random_int(0, 59)
                )
            case TypeCategory.UUID:
                return UUID(self.fake.uuid4())
            case TypeCategory.JSON:
                return {"key": self.fake.word(), "value": self.fake.random_int(min=1, max=100)}
            case TypeCategory.BINARY:
                return self.fake.binary(length=16)
        return self.fake.text(max_nb_chars=50).rstrip(".")

    def _moment(self) -> datetime:
        now = self.clock().replace(microsecond=0)
        return now - timedelta(seconds=self.fake.random_int(min=0, max=5 * 365 * 86400))

    def _max_units(self, column: ColumnInfo | None, scale: int) -> int:
        """Largest unscaled integer that fits the column's precision."""
        limit = 10000 * 10**scale
        if column is None or column.numeric_precision is None:
            return limit
        return min(10**column.numeric_precision - 1, limit)
