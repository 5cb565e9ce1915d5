"""
Outlet Settings Service

Reads and writes the service-area settings (outlet coordinates and delivery
radius) kept in the key-value settings table, falling back to the configured
defaults for keys that have never been saved.
"""

from collections import namedtuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Setting
from services.errors import InternalError, ValidationError

ServiceArea = namedtuple('ServiceArea', ['outlet_lat', 'outlet_lng', 'service_radius_km'])

# Settings key -> config key holding its default.
SERVICE_AREA_KEYS = {
    'outlet_lat': 'OUTLET_LAT',
    'outlet_lng': 'OUTLET_LNG',
    'service_radius_km': 'SERVICE_RADIUS_KM',
}


def _defaults():
    return {key: float(current_app.config[config_key]) for key, config_key in SERVICE_AREA_KEYS.items()}


def get_service_area():
    """Current outlet location and delivery radius."""
    values = _defaults()
    rows = Setting.query.filter(Setting.key.in_(SERVICE_AREA_KEYS.keys())).all()
    for row in rows:
        try:
            values[row.key] = float(row.value)
        except (TypeError, ValueError):
            current_app.logger.warning(f"Ignoring non-numeric setting {row.key}={row.value!r}; using default {values[row.key]}.")
    return ServiceArea(**values)


def update_service_area(outlet_lat=None, outlet_lng=None, service_radius_km=None):
    """
    Upserts whichever of the three values are given.

    Raises:
        ValidationError: Coordinates out of range or a non-positive radius.
    """
    updates = {}
    if outlet_lat is not None:
        if not -90 <= outlet_lat <= 90:
            raise ValidationError("outlet_lat must be between -90 and 90.")
        updates['outlet_lat'] = outlet_lat
    if outlet_lng is not None:
        if not -180 <= outlet_lng <= 180:
            raise ValidationError("outlet_lng must be between -180 and 180.")
        updates['outlet_lng'] = outlet_lng
    if service_radius_km is not None:
        if service_radius_km <= 0:
            raise ValidationError("service_radius_km must be greater than zero.")
        updates['service_radius_km'] = service_radius_km

    try:
        for key, value in updates.items():
            row = Setting.query.filter_by(key=key).first()
            if row is None:
                db.session.add(Setting(key=key, value=str(value)))
            else:
                row.value = str(value)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving service area settings {updates}: {e}", exc_info=True)
        raise InternalError("Failed to update service area settings")

    current_app.logger.info(f"Service area settings updated: {updates}")
    return get_service_area()


def seed_default_settings():
    """Inserts the configured defaults for any service-area key that has no row yet."""
    created = 0
    for key, value in _defaults().items():
        if Setting.query.filter_by(key=key).first() is None:
            db.session.add(Setting(key=key, value=str(value)))
            created += 1
    db.session.commit()
    return created
