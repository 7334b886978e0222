# storefront/domain/__init__.py
