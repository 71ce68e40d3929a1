# fedcore/constants.py
"""
Wire-format constants shared by the signer, fetcher and dispatcher.
"""

AS_CONTEXT = "https://www.w3.org/ns/activitystreams"

# Addressing a payload to this collection makes it public.
PUBLIC_ADDRESS = "https://www.w3.org/ns/activitystreams#Public"

LD_JSON_MEDIA_TYPE = 'application/ld+json; profile="https://www.w3.org/ns/activitystreams"'

CACHE_TTL_SECONDS = 60 * 5

SYSTEM_IDENTITY = 0
