# Services package init
"""
Character API: Services Layer
================================

Service Inventory:
    - CharacterService: create/list/paginate/get/update/delete characters,
      plus the input helpers (id parsing, lenient page parsing, schema
      validation) the routes share.
"""
