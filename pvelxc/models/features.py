"""Container feature flags.

Privileged and unprivileged containers expose different flag sets, so
the desired record holds one of two variants. Both are folded into a
fixed six-slot boolean vector, and rendering that vector to the
``features`` string is a separate pure function.
"""
from dataclasses import dataclass, fields
from typing import NamedTuple, Optional


class FeatureVector(NamedTuple):
    create_device_nodes: bool = False
    fuse: bool = False
    keyctl: bool = False
    nfs: bool = False
    nesting: bool = False
    smb: bool = False


@dataclass
class PrivilegedFeatures:
    create_device_nodes: Optional[bool] = None
    fuse: Optional[bool] = None
    nfs: Optional[bool] = None
    nesting: Optional[bool] = None
    smb: Optional[bool] = None


@dataclass
class UnprivilegedFeatures:
    create_device_nodes: Optional[bool] = None
    fuse: Optional[bool] = None
    keyctl: Optional[bool] = None
    nesting: Optional[bool] = None


@dataclass
class LxcFeatures:
    privileged: Optional[PrivilegedFeatures] = None
    unprivileged: Optional[UnprivilegedFeatures] = None

    def overlay(self, base: FeatureVector) -> FeatureVector:
        """Apply every flag that is set on top of ``base``."""
        updates = {}
        for variant in (self.privileged, self.unprivileged):
            if variant is None:
                continue
            for f in fields(variant):
                value = getattr(variant, f.name)
                if value is not None:
                    updates[f.name] = value
        return base._replace(**updates)


def render_features(vector: FeatureVector) -> str:
    """Render to the comma separated form, '' when nothing is enabled."""
    parts = []
    if vector.create_device_nodes:
        parts.append("mknod=1")
    if vector.fuse:
        parts.append("fuse=1")
    if vector.keyctl:
        parts.append("keyctl=1")
    if vector.nfs:
        parts.append("mount=nfs;cifs" if vector.smb else "mount=nfs")
    elif vector.smb:
        parts.append("mount=cifs")
    if vector.nesting:
        parts.append("nesting=1")
    return ",".join(parts)


def parse_features(raw: str) -> Optional[FeatureVector]:
    """Parse the ``features`` string; None when it sets nothing."""
    flags = {}
    for item in raw.split(","):
        key, _, value = item.partition("=")
        if key == "mknod":
            flags["create_device_nodes"] = value == "1"
        elif key == "fuse":
            flags["fuse"] = value == "1"
        elif key == "keyctl":
            flags["keyctl"] = value == "1"
        elif key == "nesting":
            flags["nesting"] = value == "1"
        elif key == "mount":
            filesystems = value.split(";")
            flags["nfs"] = "nfs" in filesystems
            flags["smb"] = "cifs" in filesystems
    if not flags:
        return None
    return FeatureVector(**flags)


def features_from_vector(vector: FeatureVector, privileged: bool) -> LxcFeatures:
    """Build the variant matching the guest's privilege mode."""
    if privileged:
        return LxcFeatures(privileged=PrivilegedFeatures(
            create_device_nodes=vector.create_device_nodes,
            fuse=vector.fuse,
            nfs=vector.nfs,
            nesting=vector.nesting,
            smb=vector.smb,
        ))
    return LxcFeatures(unprivileged=UnprivilegedFeatures(
        create_device_nodes=vector.create_device_nodes,
        fuse=vector.fuse,
        keyctl=vector.keyctl,
        nesting=vector.nesting,
    ))
