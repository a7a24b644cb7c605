# Routes package init
"""
Character API: Routes Package
================================

Route Inventory:
    - characters.py: /characters/list, /characters/paginated,
                     /characters (by nickname, create),
                     /characters/{id} (get, update, delete)
    - health.py:     GET / (liveness), GET /health (store check)

Routes stay thin: they pull input out of the request, call
CharacterService, and pick the status code and response type.
"""
