"""Lead Relay Service.

This package provides the server-side relay for the lead-generation CRM: it
forwards search requests to an external automation webhook (n8n, Make, Zapier),
retries while the automation endpoint wakes up, records an audit log for every
invocation, and stores the returned businesses as leads.
"""

__version__ = "0.1.0"
