from unittest.mock import patch

import pulumi

from clouddev.droplet import DropletConfig, droplet_program


class DropletMocks(pulumi.runtime.Mocks):
    def __init__(self):
        self.resources = []

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.resources.append(args)
        outputs = dict(args.inputs)
        outputs.setdefault("name", args.name)
        outputs["ipv4Address"] = "203.0.113.10"
        return [f"{args.name}-id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}


mocks = DropletMocks()
pulumi.runtime.set_mocks(mocks, preview=False)


@pulumi.runtime.test
def test_droplet_program_declares_droplet_and_exports():
    droplet = DropletConfig(
        name="web",
        image="ubuntu-22-04-x64",
        region="nyc3",
        size="s-1vcpu-1gb",
        ssh_keys=["12345"],
        tags=["dev"],
    )
    exports = {}
    with patch.object(pulumi, "export", exports.__setitem__):
        droplet_program(droplet)()

    assert set(exports) == {"name", "ip"}

    def check(values):
        name, ip = values
        assert name == "web"
        assert ip == "203.0.113.10"

        resource = next(r for r in mocks.resources if r.name == "web")
        assert resource.typ == "digitalocean:index/droplet:Droplet"
        assert resource.inputs["image"] == "ubuntu-22-04-x64"
        assert resource.inputs["region"] == "nyc3"
        assert resource.inputs["size"] == "s-1vcpu-1gb"
        assert resource.inputs["sshKeys"] == ["12345"]
        assert resource.inputs["tags"] == ["dev"]

    return pulumi.Output.all(exports["name"], exports["ip"]).apply(check)
