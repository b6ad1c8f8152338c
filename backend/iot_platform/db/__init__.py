"""
iot_platform.db

Package base de données : base déclarative, engine et sessions async.

Contenu :
- base    : classe Base commune à tous les modèles ORM.
- session : engine + factory AsyncSession, dépendance FastAPI get_db(), init_models().
- migrations : Alembic (côté sync) via DATABASE_URL_SYNC.
"""
