"""WORKSPACE file contents for generated test workspaces."""

DEFAULT_REPOS = [
    {
        "name": "rules_cc",
        "sha256": "812a3924348af40492017e7ca6f44819f572dae57bd4c736d2853b4f03522c45",
        "strip_prefix": "rules_cc-2174aa631a0c32cb14ca0782af43aa0bd0aa1bb3",
        "urls": [
            "https://github.com/wrowe/rules_cc/archive/"
            "2174aa631a0c32cb14ca0782af43aa0bd0aa1bb3.zip",
        ],
    },
    {
        "name": "rules_proto",
        "sha256": "8e7d59a5b12b233be5652e3d29f42fba01c7cbab09f6b3a8d0a57ed6d1e9a0da",
        "strip_prefix": "rules_proto-7e4afce6fe62dbff0a4a03450143146f9f2d7488",
        "urls": [
            "https://mirror.bazel.build/github.com/bazelbuild/rules_proto/archive/"
            "7e4afce6fe62dbff0a4a03450143146f9f2d7488.tar.gz",
            "https://github.com/bazelbuild/rules_proto/archive/"
            "7e4afce6fe62dbff0a4a03450143146f9f2d7488.tar.gz",
        ],
    },
]


def _http_archive(repo: dict) -> list[str]:
    return [
        "http_archive(",
        f"    name = '{repo['name']}',",
        f"    sha256 = '{repo['sha256']}',",
        f"    strip_prefix = '{repo['strip_prefix']}',",
        "    urls = [",
        *(f"        '{url}'," for url in repo["urls"]),
        "    ],",
        ")",
    ]


def get_workspace_with_default_repos() -> str:
    """WORKSPACE declaring the external repositories every test workspace needs."""
    lines = ["load('@bazel_tools//tools/build_defs/repo:http.bzl', 'http_archive')"]
    for repo in DEFAULT_REPOS:
        lines.extend(_http_archive(repo))
    return "\n".join(lines)
