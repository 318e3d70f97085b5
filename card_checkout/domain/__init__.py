"""
Domain Layer - Pure Business Logic

This layer contains:
- Entities (Product, Customer, Delivery)
- The Transaction aggregate and its state machine
- Value objects (checkout amounts)
- The domain error taxonomy
- Outbound ports (repository and gateway contracts)

Key principle: ZERO dependencies on infrastructure.
"""
