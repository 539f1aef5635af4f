"""Service layer for business logic.

Services keep routes thin and focused on HTTP handling:
- ResourceService: generic CRUD for every resource type, driven by the
  descriptors in resource_types
- RelationResolver: turns relation urls into stored entities
- users_service: registration, login, admin account management
- swapi_seed_service: imports the public SWAPI dataset

Layer hierarchy:
    Routes (HTTP) -> Services (Business Logic) -> Repositories (Database)

Services raise domain errors (services.errors) and never build HTTP
responses; main.py translates errors into the uniform error body.
"""
