"""
ClaimGraph Core - ontology shared by every layer
"""
