from extensions import db # Import the SQLAlchemy instance from extensions.

class MenuItem(db.Model):
    """
    A dish customers can build a plan around (e.g., "CHICKEN", "PANEER").

    The name doubles as the "protein" key sent with an order, so it must be unique.
    The price is captured into the Order at purchase time; editing it later
    never reprices existing orders.
    """
    __tablename__ = 'menu_items' # Specifies the database table name.

    id = db.Column(db.Integer, primary_key=True) # Unique identifier for the menu item.
    name = db.Column(db.String(100), unique=True, nullable=False, index=True) # Protein key, matched exactly at order time.
    price = db.Column(db.Integer, nullable=False, default=0) # Price of one meal, in whole currency units.
    protein_amount = db.Column(db.Integer, nullable=True) # Grams of protein per meal.
    calories = db.Column(db.Integer, nullable=True) # Calories per meal.
    description = db.Column(db.String(255), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'protein_amount': self.protein_amount,
            'calories': self.calories,
            'description': self.description,
        }

    def __repr__(self):
        """
        Provides a string representation of the MenuItem object, useful for debugging.
        """
        return f'<MenuItem {self.name} - {self.price}>'
