"""
Places Lookup Module

Google Places business search with WhatsApp presence enrichment
and a photo proxy.
"""
