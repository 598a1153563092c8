"""
Visibility comparison engine.

The pure pieces (depth model, rule classification, ribbon extraction,
security context comparison and aggregation) live in submodules; the
``service`` module wires them to a Dataverse client.
"""
