"""Pure domain layer: enums, DTOs, topologies and note composition. No I/O."""
