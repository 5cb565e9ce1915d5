from extensions import db

class Setting(db.Model):
    """Key-value storage for outlet settings (location and delivery radius)."""
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(50), unique=True, nullable=False)
    value = db.Column(db.String(200), nullable=False)

    def __repr__(self):
        return f'<Setting {self.key}={self.value}>'
