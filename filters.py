"""Allow-listed attribute filters for the ``/{attribute}/{data}`` query routes.

Client-supplied attribute names are only ever used as keys into the mappings
below; they never reach SQL as column names.
"""
from sqlalchemy import and_

from errors import ValidationError
from helpers import date_range, day_bounds, parse_date
from models import Link, User, Visit


def within(column, start, end):
    return and_(column >= start, column < end)


class FieldFilter:
    def __init__(self, column, parser=str, whole_day=False):
        self.column = column
        self.parser = parser
        self.whole_day = whole_day

    def clause(self, value):
        if self.whole_day:
            return within(self.column, *day_bounds(value, value))
        return self.column == value


LINK_FILTERS = {
    "id": FieldFilter(Link.id, int),
    "original_link": FieldFilter(Link.original_link),
    "short_link": FieldFilter(Link.short_link),
    "id_user": FieldFilter(Link.id_user, int),
    "registration_date": FieldFilter(Link.registration_date, parse_date, whole_day=True),
}

USER_FILTERS = {
    "id": FieldFilter(User.id, int),
    "email": FieldFilter(User.email),
    "name": FieldFilter(User.name),
    "birth_date": FieldFilter(User.birth_date, parse_date),
    "role": FieldFilter(User.role),
}

USER_DELETE_FILTERS = {name: USER_FILTERS[name] for name in ("id", "email", "name")}

VISIT_FILTERS = {
    "id": FieldFilter(Visit.id, int),
    "operating_system": FieldFilter(Visit.operating_system),
    "browser": FieldFilter(Visit.browser),
    "ip_address": FieldFilter(Visit.ip_address),
    "country": FieldFilter(Visit.country),
    "city": FieldFilter(Visit.city),
    "id_user": FieldFilter(Visit.id_user, int),
    "id_link": FieldFilter(Visit.id_link, int),
    "visited_date": FieldFilter(Visit.visited_date, parse_date, whole_day=True),
}


def apply_filter(query, allowed, attribute: str, data: str):
    attribute = attribute.strip()
    field = allowed.get(attribute)
    if field is None:
        names = ", ".join(f"'{name}'" for name in allowed)
        raise ValidationError(f"Invalid attribute. You can use only {names}")
    try:
        value = field.parser(data.strip())
    except ValueError:
        raise ValidationError(f"Invalid value for {attribute}")
    return query.filter(field.clause(value))


def apply_date_range(query, column, initial_date: str, final_date: str):
    start, end = date_range(initial_date, final_date)
    return query.filter(within(column, start, end))
