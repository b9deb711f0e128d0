"""Pure domain layer: value types, DTOs and stateless accounting rules."""
