"""
Ingestion Services.

Pure record-shaping logic used by the ingestion controller and fan-in
dispatcher. Nothing here touches the catalog database or Service Bus.

Modules:
    geometry_reprojector: GeoJSON reprojection to WGS84
    tile_info_client: Async tileInfo.json fetches
    record_normalizer: Manifest row to STAC item conversion
    transform_stream: Lazy per-chunk transformation with failure isolation
    reference_fetcher: Blob/HTTP reference resolution for fan-in messages
    sentinel_collection: Sentinel-2 L1C collection descriptor and registry

Services are imported from their modules directly; this package does not
re-export them so importing one does not pull in pyproj or httpx.
"""
