"""
stockbot.schemas

Schémas API (Pydantic) : contrat HTTP des trades et du portefeuille.

- Les modèles ORM (stockbot.models) restent la persistance.
- Les schémas (stockbot.schemas) sont le contrat HTTP : ils parsent la requête,
  mais la validation métier d’un trade (quantité, type…) est faite par le moteur
  pour respecter l’ordre des contrôles (autorisation, membre, item, puis forme).
"""
