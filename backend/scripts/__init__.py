"""
scripts

Package utilitaire pour les scripts de maintenance / démo.

Rôle (fonctionnel) :
- Contient des scripts exécutables (CLI) liés au projet, par exemple :
  - génération de données (parc de démo, historique de relevés)

Note :
- Les scripts ne doivent pas contenir de logique métier “centrale” :
  ils orchestrent et appellent les services de `iot_platform/`.
"""
