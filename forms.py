from collections import namedtuple

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import StringField, PasswordField, BooleanField, IntegerField, FloatField, DateField, SelectMultipleField
from wtforms.validators import DataRequired, Email, EqualTo, InputRequired, Length, NumberRange, Optional, ValidationError # Import standard validators.

from models.user import User # Import User model for email validation.
from services import errors
from utils.pricing import AddOnSelection, FREQUENCIES, FREQUENCY_ONCE

MEAL_TYPE_CHOICES = [('LUNCH', 'Lunch'), ('DINNER', 'Dinner')]

# Longest plan that can be ordered or quoted in one go.
MAX_PLAN_DAYS = 365

OrderRequest = namedtuple('OrderRequest', [
    'protein', 'days', 'meals_per_day', 'meal_types', 'start_date',
    'delivery_lat', 'delivery_lng', 'delivery_address', 'addons', 'notes',
])

PriceQuoteRequest = namedtuple('PriceQuoteRequest', ['protein', 'days', 'meals_per_day', 'meal_types', 'addons'])


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _form_value(value):
    """JSON scalar -> form string. Booleans use the spellings BooleanField understands."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class JSONForm(FlaskForm):
    """
    Base for forms validated from a JSON body instead of an HTML form post.

    The SPA authenticates with the session cookie and sends JSON, so CSRF tokens are not used here.
    """
    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, payload):
        """
        Builds the form from a decoded JSON object.
        Lists become multi-valued fields; nested objects and nulls are left out (handled by the caller).
        """
        if not isinstance(payload, dict):
            raise errors.ValidationError("Missing JSON payload.")
        formdata = MultiDict()
        for key, value in payload.items():
            if value is None or isinstance(value, dict):
                continue
            if isinstance(value, list):
                for item in value:
                    formdata.add(key, _form_value(item))
            else:
                formdata.add(key, _form_value(value))
        return cls(formdata=formdata)

    def first_error(self):
        """First validation message, in field order."""
        for field in self:
            if field.errors:
                return f"{field.name}: {field.errors[0]}"
        return "Invalid request."


def validate_json(form_class, payload):
    """
    Validates a JSON payload with `form_class`.

    Raises:
        services.errors.ValidationError: With the first field error as the message.
    """
    form = form_class.from_json(payload)
    if not form.validate():
        raise errors.ValidationError(form.first_error(), details={'fields': form.errors})
    return form


class PriceQuoteForm(JSONForm):
    """Plan parameters needed to price a plan."""
    protein = StringField('Protein', filters=[_strip], validators=[DataRequired(message="Protein is required."), Length(max=100)])
    days = IntegerField('Days', validators=[
        InputRequired(message="Days is required."),
        NumberRange(min=1, max=MAX_PLAN_DAYS, message=f"Days must be between 1 and {MAX_PLAN_DAYS}."),
    ])
    # Either meals_per_day or meal_types must be given; meal_types wins when both are.
    meals_per_day = IntegerField('Meals per day', validators=[Optional()])
    meal_types = SelectMultipleField('Meal types', choices=MEAL_TYPE_CHOICES, coerce=lambda v: str(v).upper(), validate_choice=True)

    def validate_meals_per_day(self, field):
        # Ignored when meal_types is given, since the count then comes from meal_types.
        if not self.meal_types.data and field.data not in (1, 2):
            raise ValidationError("Meals per day must be 1 or 2.")

    def validate_meal_types(self, field):
        # Runs even when meals_per_day is absent; Optional() stops that field's own chain.
        if not field.data and self.meals_per_day.data is None:
            raise ValidationError("Provide meals_per_day or meal_types.")


class OrderRequestForm(PriceQuoteForm):
    """Full order request: plan parameters plus start date, delivery details and notes."""
    start_date = DateField('Start date', format='%Y-%m-%d', validators=[DataRequired(message="Start date is required (YYYY-MM-DD).")])
    delivery_lat = FloatField('Delivery latitude', validators=[Optional(), NumberRange(min=-90, max=90)])
    delivery_lng = FloatField('Delivery longitude', validators=[Optional(), NumberRange(min=-180, max=180)])
    delivery_address = StringField('Delivery address', filters=[_strip], validators=[Optional(), Length(max=500)])
    notes = StringField('Notes', filters=[_strip], validators=[Optional(), Length(max=500)])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        # A location is only usable with both coordinates.
        if (self.delivery_lat.data is None) != (self.delivery_lng.data is None):
            self.delivery_lng.errors = list(self.delivery_lng.errors) + ["Send both delivery_lat and delivery_lng, or neither."]
            return False
        return True


# Keys whose absence gets the combined "Missing required fields" message.
REQUIRED_ORDER_FIELDS = ('protein', 'days', 'start_date')


def parse_addon_selections(raw):
    """
    Validates the add-on selection map {"<addon id>": {"quantity": int, "frequency": "once"|"daily"}}.

    Returns:
        dict: add-on id (str) -> AddOnSelection.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise errors.ValidationError("addons must be an object keyed by add-on id.")

    selections = {}
    for addon_id, entry in raw.items():
        if not isinstance(entry, dict):
            raise errors.ValidationError(f"Add-on {addon_id}: selection must be an object with quantity and frequency.")
        quantity = entry.get('quantity', 0)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise errors.ValidationError(f"Add-on {addon_id}: quantity must be a whole number of 0 or more.")
        frequency = entry.get('frequency') or FREQUENCY_ONCE
        if frequency not in FREQUENCIES:
            raise errors.ValidationError(f"Add-on {addon_id}: frequency must be one of {', '.join(FREQUENCIES)}.")
        selections[str(addon_id)] = AddOnSelection(quantity=quantity, frequency=frequency)
    return selections


def parse_price_quote_request(payload):
    form = validate_json(PriceQuoteForm, payload)
    return PriceQuoteRequest(
        protein=form.protein.data,
        days=form.days.data,
        meals_per_day=form.meals_per_day.data,
        meal_types=list(form.meal_types.data or []),
        addons=parse_addon_selections(payload.get('addons')),
    )


def parse_order_request(payload):
    """
    Turns a loosely typed JSON order body into an OrderRequest.

    Raises:
        services.errors.ValidationError: Missing required fields, bad types, or a bad add-on map.
    """
    if not isinstance(payload, dict) or not payload:
        raise errors.ValidationError("Missing JSON payload.")

    missing = [name for name in REQUIRED_ORDER_FIELDS if payload.get(name) in (None, '')]
    if payload.get('meals_per_day') in (None, '') and not payload.get('meal_types'):
        missing.append('meals_per_day (or meal_types)')
    if missing:
        raise errors.ValidationError(f"Missing required fields: {', '.join(missing)}")

    form = validate_json(OrderRequestForm, payload)
    return OrderRequest(
        protein=form.protein.data,
        days=form.days.data,
        meals_per_day=form.meals_per_day.data,
        meal_types=list(form.meal_types.data or []),
        start_date=form.start_date.data,
        delivery_lat=form.delivery_lat.data,
        delivery_lng=form.delivery_lng.data,
        delivery_address=form.delivery_address.data or None,
        addons=parse_addon_selections(payload.get('addons')),
        notes=form.notes.data or None,
    )


class CancelSubscriptionForm(JSONForm):
    reason = StringField('Reason', filters=[_strip], validators=[Optional(), Length(max=500)])


class SubscriptionAdminUpdateForm(JSONForm):
    """Admin override of a subscription's entitlements."""
    pauses_remaining = IntegerField('Pauses remaining', validators=[Optional(), NumberRange(min=0, message="Pauses remaining cannot be negative.")])
    end_date = DateField('End date', format='%Y-%m-%d', validators=[Optional()])


class DeliveryAssignForm(JSONForm):
    subscription_id = IntegerField('Subscription', validators=[DataRequired(message="subscription_id is required.")])
    delivery_user_id = IntegerField('Delivery partner', validators=[DataRequired(message="delivery_user_id is required.")])


class DeliveryReadyForm(JSONForm):
    subscription_id = IntegerField('Subscription', validators=[DataRequired(message="subscription_id is required.")])


class DeliveryConfirmForm(JSONForm):
    subscription_id = IntegerField('Subscription', validators=[DataRequired(message="subscription_id is required.")])
    # No DataRequired: it would reject a legitimate 0.0. A missing value fails the range check instead.
    latitude = FloatField('Latitude', validators=[NumberRange(min=-90, max=90, message="latitude is required and must be between -90 and 90.")])
    longitude = FloatField('Longitude', validators=[NumberRange(min=-180, max=180, message="longitude is required and must be between -180 and 180.")])


class ServiceAreaForm(JSONForm):
    outlet_lat = FloatField('Outlet latitude', validators=[Optional()])
    outlet_lng = FloatField('Outlet longitude', validators=[Optional()])
    service_radius_km = FloatField('Service radius (km)', validators=[Optional()])


class RegistrationForm(JSONForm):
    """
    Form for user registration.
    Custom validation is included to check if an email is already registered.
    """
    # Email field: requires data and must be a valid email format.
    email = StringField('Email', filters=[_strip], validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    # Password field: requires data and must be at least 6 characters long.
    password = PasswordField('Password', validators=[DataRequired(message="Password is required."), Length(min=6, message="Password must be at least 6 characters long.")])
    # Confirm Password field: requires data and must match the 'password' field.
    confirm_password = PasswordField('Confirm Password', validators=[DataRequired(message="Please confirm your password."), EqualTo('password', message="Passwords must match.")])
    name = StringField('Name', filters=[_strip], validators=[DataRequired(message="Name is required."), Length(max=100)])
    phone = StringField('Phone', filters=[_strip], validators=[Optional(), Length(max=20)])
    address = StringField('Address', filters=[_strip], validators=[Optional(), Length(max=500)])

    def validate_email(self, email):
        """
        Custom validator for the email field.
        Checks if the provided email address already exists in the database.

        Raises:
            ValidationError: If the email is already taken.
        """
        user = User.query.filter_by(email=email.data.lower()).first() # Convert to lower for case-insensitive check
        if user:
            raise ValidationError('That email address is already registered. Please choose a different one or log in.')

class LoginForm(JSONForm):
    """
    Form for user login.
    Includes fields for email, password, and a "Remember Me" option.
    """
    email = StringField('Email', filters=[_strip], validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required.")])
    # Remember Me field: boolean field for persistent login session.
    remember_me = BooleanField('Remember Me')
