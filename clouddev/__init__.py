"""clouddev - provision a DigitalOcean droplet with Pulumi."""
from clouddev.version import VERSION as __version__
