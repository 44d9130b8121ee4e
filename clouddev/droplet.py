from dataclasses import dataclass, field
from typing import Callable, List

import pulumi
import pulumi_digitalocean as do

from clouddev.utils.config import Config
from clouddev.utils.errors import ConfigError

@dataclass
class DropletConfig:
    name: str
    image: str
    region: str
    size: str
    ssh_keys: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: Config) -> 'DropletConfig':
        """Read the droplet settings from the name, image, region, size, sshKeys and tags keys."""
        values = {key: config.get_string(key) for key in ("name", "image", "region", "size")}
        missing = [key for key, value in values.items() if not value]
        if missing:
            raise ConfigError(f"missing droplet configuration: {', '.join(missing)}")
        return cls(
            ssh_keys=config.get_string_list("sshKeys"),
            tags=config.get_string_list("tags"),
            **values,
        )

def droplet_program(droplet: DropletConfig) -> Callable[[], None]:
    """Build the inline Pulumi program that declares the droplet."""
    def program() -> None:
        resource = do.Droplet(
            droplet.name,
            image=droplet.image,
            region=droplet.region,
            size=droplet.size,
            ssh_keys=list(droplet.ssh_keys),
            tags=list(droplet.tags),
        )
        pulumi.export("name", resource.name)
        pulumi.export("ip", resource.ipv4_address)

    return program
