"""
Routes package for the tour gateway
Blueprint-based modular route organization
"""


def register_blueprints(app):
    """
    Register all route blueprints with the Quart app

    API blueprints first, locale view routes last.
    """
    from .admin import register as register_admin
    from .media import register as register_media
    from .contact import register as register_contact
    from .reviews import register as register_reviews
    from .tours import register as register_tours

    register_admin(app)
    register_media(app)
    register_contact(app)
    register_reviews(app)
    register_tours(app)
