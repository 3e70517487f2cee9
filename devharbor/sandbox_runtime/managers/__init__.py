"""Data access managers for the sandbox runtime.

Managers accept ``AsyncSession`` as a parameter and raise domain exceptions
(see ``devharbor.sandbox_runtime.errors``), never HTTP exceptions -- that
translation is the router's responsibility.
"""
