"""
Initialize the database with tables and seed data
"""
from server import app
from models import db
from core.permissions.constants import DEFAULT_ROLES
from core.permissions.roles import seed_default_roles


def init_database():
    """Create all database tables and seed the default roles"""
    with app.app_context():
        db.create_all()
        print("✅ Database tables created successfully!")

        created = seed_default_roles()
        if created:
            print("✅ Seeded default roles:")
            for role_name in created:
                print(f"   - {role_name}: {', '.join(DEFAULT_ROLES[role_name])}")
        else:
            print("ℹ️  Default roles already exist, skipping seed.")


if __name__ == '__main__':
    init_database()
