from extensions import db

class AddOn(db.Model):
    """
    Optional extra attached to a plan (drinks, desserts, kefir).

    `allow_subscription` controls whether the add-on may be ordered daily for the
    whole plan instead of once. Add-ons with "kefir" in the name get an extra
    duration discount (see utils.pricing.KEFIR_NAME_MARKER).
    """
    __tablename__ = 'add_ons'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Integer, nullable=False) # Price per unit.
    allow_subscription = db.Column(db.Boolean, nullable=False, default=False)
    description = db.Column(db.String(255), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'allow_subscription': self.allow_subscription,
            'description': self.description,
        }

    def __repr__(self):
        return f'<AddOn {self.name} - {self.price}>'
