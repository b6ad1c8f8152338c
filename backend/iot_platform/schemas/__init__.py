"""
iot_platform.schemas

Package des schémas API (Pydantic).

Rôle (fonctionnel) :
- Définit les modèles d’entrée/sortie utilisés par l’API (request/response).
- Sépare clairement :
  - les modèles ORM (iot_platform.models) = persistance DB
  - les schémas Pydantic (iot_platform.schemas) = contrat HTTP / validation

Usage :
- Les endpoints FastAPI déclarent response_model=... et valident les payloads avec ces schémas.
- Les valeurs décimales (relevés, seuils) sont sérialisées en chaîne pour ne rien perdre en précision.
"""
