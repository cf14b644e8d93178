"""
GST settlement modules (``gst_modules``).

Responsibility
--------------
Thin glue that composes the pure engines (``gst_engines``) with kernel
services (``gst_kernel``): invoicing, order settlement, vendor payouts and
periodic reporting.  ``gst_modules.bootstrap.build_engine`` wires them.

Architecture position
---------------------
**Modules layer** -- owns unit-of-work boundaries.  The kernel and the
engines MUST NOT import from here.
"""
