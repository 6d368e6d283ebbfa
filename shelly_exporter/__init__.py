"""Shelly plug metrics exporter.

Polls a fixed set of Shelly plugs over HTTP on a fixed cadence, turns each
response into a normalized metric set and exposes the results as Prometheus
metrics.

Key modules:
    poller          -- Poller driving fixed-period, fan-out/fan-in ticks
    scrapers        -- CurlScraper streaming one libcurl GET per call
    response_parser -- HttpResponseParser incremental status/header/body parser
    transport       -- TransportLibrary reference-counted libcurl state
    base            -- BaseScraper and BaseParser abstract classes
    shelly          -- ShellyParser for Switch.GetStatus JSON payloads
    metrics         -- MetricsRegistry per-target gauges and counters
    server          -- MetricsServer exposing the registry over HTTP
    config          -- load_targets JSON target file loader
    models          -- Target, RawResponse, Metrics dataclasses
    errors          -- ExporterError hierarchy
    logger          -- logging configuration
    cli             -- command-line entry point
"""
