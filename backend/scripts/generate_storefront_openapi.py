"""Generate OpenAPI schema containing only storefront-facing endpoints.

Drops operations tagged as admin, keeps the schemas the remaining operations
reference, and adds a JWT Bearer security scheme.
"""

import json
import re
import sys

ADMIN_TAG = "Coupon Admin"
HTTP_METHODS = {"get", "put", "post", "delete", "patch", "options", "head"}


def collect_refs(obj: object) -> set[str]:
    """Recursively collect all $ref schema names from an OpenAPI object."""
    refs: set[str] = set()
    if isinstance(obj, dict):
        if "$ref" in obj:
            ref = obj["$ref"]
            match = re.search(r"/([^/]+)$", ref)
            if match:
                refs.add(match.group(1))
        for value in obj.values():
            refs |= collect_refs(value)
    elif isinstance(obj, list):
        for item in obj:
            refs |= collect_refs(item)
    return refs


def resolve_all_refs(schema_names: set[str], schemas: dict) -> set[str]:
    """Transitively resolve all schema references."""
    resolved: set[str] = set()
    queue = list(schema_names)
    while queue:
        name = queue.pop()
        if name in resolved or name not in schemas:
            continue
        resolved.add(name)
        nested = collect_refs(schemas[name])
        queue.extend(nested - resolved)
    return resolved


def generate_storefront_openapi(full_spec: dict, admin_tag: str = ADMIN_TAG) -> dict:
    """Filter the full OpenAPI spec down to operations the storefront may call."""
    storefront_paths: dict = {}
    for path, operations in full_spec.get("paths", {}).items():
        kept = {
            method: operation
            for method, operation in operations.items()
            if method not in HTTP_METHODS or admin_tag not in operation.get("tags", [])
        }
        if any(method in HTTP_METHODS for method in kept):
            storefront_paths[path] = kept

    if not storefront_paths:
        print("Warning: no storefront operations found in spec", file=sys.stderr)

    all_schemas = full_spec.get("components", {}).get("schemas", {})
    referenced = collect_refs(storefront_paths)
    all_referenced = resolve_all_refs(referenced, all_schemas)
    storefront_schemas = {k: v for k, v in all_schemas.items() if k in all_referenced}

    storefront_spec: dict = {
        "openapi": full_spec.get("openapi", "3.1.0"),
        "info": {
            "title": "Storefront Coupons API",
            "description": (
                "Coupon endpoints used by the storefront client. "
                "Authenticate with a JWT passed as a Bearer token."
            ),
            "version": full_spec.get("info", {}).get("version", "0.1.0"),
        },
        "paths": storefront_paths,
        "components": {
            "schemas": storefront_schemas,
            "securitySchemes": {
                "BearerJWT": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT",
                    "description": "Access token identifying the shopper.",
                },
            },
        },
        "security": [{"BearerJWT": []}],
    }

    return storefront_spec


if __name__ == "__main__":
    from app.main import app

    print(json.dumps(generate_storefront_openapi(app.openapi()), indent=2))
