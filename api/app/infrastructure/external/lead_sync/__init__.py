"""
Pipeline de sincronización incremental: Directus (event log) -> PostgreSQL.

Este paquete está diseñado para ejecutarse como job (cron / endpoint disparado
por un scheduler), no como proceso de larga vida.

Objetivos de diseño:
- Sin huecos: paginación seek por (created_at, event_key), siempre estrictamente mayor al cursor.
- Idempotencia: staging por event_key y dedupe insert-if-absent; re-procesar es seguro.
- Cursor persistido solo después de que los writes del batch están confirmados.
- Ejecución acotada en tiempo, reanudable vía token.
"""
