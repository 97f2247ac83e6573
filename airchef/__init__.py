"""Recipes generated from what is in the cupboard, kept in Airtable.

The interesting parts are small:

- Airtable stores everything as flat rows linked by id arrays, so reading a
  recipe means joining three tables back together in memory.
- Recipes come from a language model. The model is told which ingredient ids it
  may use, and whatever it sends back is validated before anyone sees it.
- Saving fans one recipe out into rows across those same tables.
"""
