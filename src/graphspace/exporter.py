"""STL, CSV, JSON and GLB export of computed surfaces."""

from __future__ import annotations

import json
import logging
import math
import re
import struct
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Sequence

import numpy as np
import pygltflib

from graphspace.analysis import vertex_normals
from graphspace.colorize import colorize, parse_color
from graphspace.errors import ExportError
from graphspace.workspace import Equation, Workspace

logger = logging.getLogger(__name__)

STL_SOLID_NAME = "GraphSpace"
CSV_HEADER = "Equation,X,Y,Z"

# z-up mesh coordinates to glTF's y-up: (x, y, z) -> (x, z, -y)
_Z_UP_TO_Y_UP = np.array(
    [
        [1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, -1.0, 0.0],
    ]
)


def _require_surfaces(surfaces: Sequence[Equation]) -> list[Equation]:
    meshed = [eq for eq in surfaces if eq.mesh is not None]
    if not meshed:
        raise ExportError("Nothing to export: create at least one surface first")
    return meshed


def format_number(value: float) -> str:
    """Shortest round-trip decimal text, laid out like JavaScript's ``String(n)``.

    Integral values print without a fraction (``1``), negative zero prints as
    ``0``, and exponent form is used only below ``1e-6`` or from ``1e21`` up.
    """
    value = float(value)
    if value == 0:
        return "0"
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "Infinity" if value > 0 else "-Infinity"

    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    n = exponent + k  # decimal point position relative to the digit string
    prefix = "-" if sign else ""

    if k <= n <= 21:
        return prefix + digits + "0" * (n - k)
    if 0 < n <= 21:
        return prefix + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return prefix + "0." + "0" * (-n) + digits

    e = n - 1
    mantissa = digits[0] + ("." + digits[1:] if k > 1 else "")
    return f"{prefix}{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"


def facet_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Unit normals ``normalize(cross(v3 - v2, v1 - v2))``; zero for degenerate facets."""
    v1 = vertices[triangles[:, 0]]
    v2 = vertices[triangles[:, 1]]
    v3 = vertices[triangles[:, 2]]
    normals = np.cross(v3 - v2, v1 - v2)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    return np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)


def render_stl(surfaces: Sequence[Equation], name: str = STL_SOLID_NAME) -> str:
    """Render every surface as facets of one ASCII STL solid."""
    lines = [f"solid {name}"]
    for equation in _require_surfaces(surfaces):
        mesh = equation.mesh
        tris = mesh.triangles.astype(np.int64)
        normals = facet_normals(mesh.vertices, tris)
        for tri, normal in zip(tris, normals):
            lines.append("  facet normal " + " ".join(format_number(c) for c in normal))
            lines.append("    outer loop")
            for index in tri:
                vertex = mesh.vertices[index]
                lines.append("      vertex " + " ".join(format_number(c) for c in vertex))
            lines.append("    endloop")
            lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    return "\n".join(lines) + "\n"


def to_fixed(value: float, digits: int = 4) -> str:
    """Fixed-point text matching JavaScript's ``Number.prototype.toFixed``.

    Ties round away from zero on the exact binary value. A value that rounds
    to zero from below keeps its sign (``-0.0000``); negative zero does not.
    """
    value = float(value)
    if value == 0:
        value = 0.0
    elif not math.isfinite(value) or abs(value) >= 1e21:
        return format_number(value)
    quantum = Decimal(1).scaleb(-digits)
    return f"{Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP):f}"


def _csv_quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def render_csv(surfaces: Sequence[Equation]) -> str:
    """One ``Equation,X,Y,Z`` row per vertex of every surface."""
    lines = [CSV_HEADER]
    for equation in _require_surfaces(surfaces):
        label = _csv_quote(equation.expression)
        for x, y, z in equation.mesh.vertices:
            lines.append(f"{label},{to_fixed(x)},{to_fixed(y)},{to_fixed(z)}")
    return "\n".join(lines) + "\n"


def workspace_to_dict(workspace: Workspace) -> dict:
    """Equations and settings in the layout of the JSON export."""
    domain = workspace.domain
    return {
        "equations": [
            {"expression": eq.expression, "color": eq.color, "visible": eq.visible}
            for eq in workspace.equations
        ],
        "settings": {
            "xmin": domain.xmin,
            "xmax": domain.xmax,
            "ymin": domain.ymin,
            "ymax": domain.ymax,
            "resolution": domain.resolution,
        },
    }


def render_json(workspace: Workspace) -> str:
    return json.dumps(workspace_to_dict(workspace), indent=2, ensure_ascii=False) + "\n"


def _write_text(text: str, output_path: Path) -> None:
    try:
        output_path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Cannot write {output_path}: {e}") from e


def export_stl(surfaces: Sequence[Equation], output_path: Path, name: str = STL_SOLID_NAME) -> None:
    _write_text(render_stl(surfaces, name=name), output_path)
    logger.info("Wrote STL to %s", output_path)


def export_csv(surfaces: Sequence[Equation], output_path: Path) -> None:
    _write_text(render_csv(surfaces), output_path)
    logger.info("Wrote CSV to %s", output_path)


def export_json(workspace: Workspace, output_path: Path) -> None:
    _write_text(render_json(workspace), output_path)
    logger.info("Wrote JSON to %s", output_path)


def export_glb(
    surfaces: Sequence[Equation], output_path: Path, color_mode: str = "solid"
) -> None:
    """Export surfaces to a binary glTF file, one mesh node per surface.

    Args:
        surfaces: Equations with computed meshes.
        output_path: Destination .glb path.
        color_mode: Per-vertex coloring written as ``COLOR_0`` unless ``solid``.

    Raises:
        ExportError: If there is nothing to export or the file cannot be
            written.
    """
    gltf = _build_gltf(_require_surfaces(surfaces), color_mode)
    try:
        _save_glb_deterministic(gltf, output_path)
    except OSError as e:
        raise ExportError(f"Cannot write {output_path}: {e}") from e
    logger.info("Wrote GLB with %d surface(s) to %s", len(gltf.meshes), output_path)


def _build_gltf(surfaces: list[Equation], color_mode: str) -> pygltflib.GLTF2:
    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[])],
        nodes=[],
        meshes=[],
        accessors=[],
        bufferViews=[],
        buffers=[],
        materials=[],
    )
    blob_data = bytearray()

    for equation in surfaces:
        mesh = equation.mesh
        positions = (mesh.vertices @ _Z_UP_TO_Y_UP.T).astype(np.float32)
        normals = (vertex_normals(mesh) @ _Z_UP_TO_Y_UP.T).astype(np.float32)
        colors = colorize(mesh, color_mode, equation.color)

        attributes = pygltflib.Attributes(
            POSITION=_write_buffer_view_and_accessor(
                gltf,
                blob_data,
                positions,
                pygltflib.FLOAT,
                pygltflib.VEC3,
                pygltflib.ARRAY_BUFFER,
                include_min_max=True,
            ),
            NORMAL=_write_buffer_view_and_accessor(
                gltf, blob_data, normals, pygltflib.FLOAT, pygltflib.VEC3, pygltflib.ARRAY_BUFFER
            ),
        )
        if colors is not None:
            attributes.COLOR_0 = _write_buffer_view_and_accessor(
                gltf,
                blob_data,
                colors.astype(np.float32),
                pygltflib.FLOAT,
                pygltflib.VEC3,
                pygltflib.ARRAY_BUFFER,
            )
        indices_idx = _write_buffer_view_and_accessor(
            gltf,
            blob_data,
            mesh.indices.astype(np.uint32),
            pygltflib.UNSIGNED_INT,
            pygltflib.SCALAR,
            pygltflib.ELEMENT_ARRAY_BUFFER,
        )

        # Vertex colors multiply the base color, so it goes white when present
        base_rgb = [1.0, 1.0, 1.0] if colors is not None else parse_color(equation.color).tolist()
        mat_idx = len(gltf.materials)
        gltf.materials.append(
            pygltflib.Material(
                name=f"equation_{equation.id}",
                pbrMetallicRoughness=pygltflib.PbrMetallicRoughness(
                    baseColorFactor=[float(np.float32(c)) for c in base_rgb] + [1.0],
                    metallicFactor=0.0,
                    roughnessFactor=0.8,
                ),
                alphaMode="OPAQUE",
                doubleSided=True,
            )
        )

        mesh_idx = len(gltf.meshes)
        gltf.meshes.append(
            pygltflib.Mesh(
                name=f"equation_{equation.id}",
                primitives=[
                    pygltflib.Primitive(
                        attributes=attributes,
                        indices=indices_idx,
                        material=mat_idx,
                    )
                ],
            )
        )
        node_idx = len(gltf.nodes)
        gltf.nodes.append(pygltflib.Node(name=equation.expression, mesh=mesh_idx))
        gltf.scenes[0].nodes.append(node_idx)

    gltf.buffers = [pygltflib.Buffer(byteLength=len(blob_data))]
    gltf.set_binary_blob(bytes(blob_data))
    return gltf


def _write_buffer_view_and_accessor(
    gltf: pygltflib.GLTF2,
    blob_data: bytearray,
    data_array: np.ndarray,
    component_type: int,
    accessor_type: str,
    target: int | None = None,
    *,
    include_min_max: bool = False,
) -> int:
    """Append *data_array* to the blob and return the index of its accessor."""
    offset = len(blob_data)
    data_bytes = data_array.tobytes()
    blob_data.extend(data_bytes)
    # Keep every view 4-byte aligned
    blob_data.extend(b"\x00" * ((4 - len(blob_data) % 4) % 4))

    bv_idx = len(gltf.bufferViews)
    gltf.bufferViews.append(
        pygltflib.BufferView(
            buffer=0,
            byteOffset=offset,
            byteLength=len(data_bytes),
            target=target,
        )
    )

    acc_kwargs: dict = {
        "bufferView": bv_idx,
        "byteOffset": 0,
        "componentType": component_type,
        "count": len(data_array),
        "type": accessor_type,
    }
    if include_min_max:
        acc_kwargs["min"] = data_array.min(axis=0).tolist()
        acc_kwargs["max"] = data_array.max(axis=0).tolist()

    acc_idx = len(gltf.accessors)
    gltf.accessors.append(pygltflib.Accessor(**acc_kwargs))
    return acc_idx


def _save_glb_deterministic(gltf: pygltflib.GLTF2, output_path: Path) -> None:
    """Save GLB with baseColorFactor values written to 6 decimal places."""
    glb_bytes = b"".join(gltf.save_to_bytes())

    # 12-byte header, then the JSON chunk header at offset 12
    json_chunk_length = struct.unpack_from("<I", glb_bytes, 12)[0]
    json_chunk_type = struct.unpack_from("<I", glb_bytes, 16)[0]
    if json_chunk_type != 0x4E4F534A:  # "JSON"
        raise ExportError("Malformed GLB: first chunk is not JSON")

    json_str = glb_bytes[20 : 20 + json_chunk_length].decode("utf-8").rstrip("\x20")

    def _format_base_color(m: re.Match) -> str:
        values = [float(v) for v in m.group(1).split(",")]
        return '"baseColorFactor":[' + ",".join(f"{v:.6f}" for v in values) + "]"

    json_str = re.sub(r'"baseColorFactor":\[([^\]]+)\]', _format_base_color, json_str)

    new_json_bytes = json_str.encode("utf-8")
    new_json_bytes += b"\x20" * ((4 - len(new_json_bytes) % 4) % 4)

    rest_of_glb = glb_bytes[20 + json_chunk_length :]
    total_length = 12 + 8 + len(new_json_bytes) + len(rest_of_glb)

    out = bytearray()
    out += struct.pack("<III", 0x46546C67, 2, total_length)
    out += struct.pack("<II", len(new_json_bytes), 0x4E4F534A)
    out += new_json_bytes
    out += rest_of_glb
    output_path.write_bytes(bytes(out))
