"""Homebrew release scripts: cross-compile, archive, checksum, formula, tap push.

Every generator returns a single shell script string, executed through the
shell by the command worker.
"""

from __future__ import annotations

from typing import List

from ..services.models import ServiceDescriptor

DEFAULT_OUTPUT_DIR = "dist"

PLATFORMS: List[str] = [
    "darwin/amd64",
    "darwin/arm64",
    "linux/amd64",
    "linux/arm64",
]

BOT_NAME = "fleet-deployer[bot]"


def formula_path(service: ServiceDescriptor, output_dir: str = DEFAULT_OUTPUT_DIR) -> str:
    return f"{output_dir}/{service.name}.rb"


def generate_build_command(
    service: ServiceDescriptor, tag: str, output_dir: str = DEFAULT_OUTPUT_DIR
) -> str:
    ldflags = "-s -w"
    if service.build.version_var:
        ldflags = f"{ldflags} -X {service.build.version_var}={tag}"

    lines = [f"mkdir -p {output_dir}"]
    for platform in PLATFORMS:
        goos, goarch = platform.split("/")
        output = f"{output_dir}/{service.name}_{tag}_{goos}_{goarch}"
        lines.append(
            f'GOOS={goos} GOARCH={goarch} CGO_ENABLED=0 go build -ldflags="{ldflags}" -o "{output}" .'
        )
    return " && ".join(lines)


def generate_archive_command(
    service: ServiceDescriptor, tag: str, output_dir: str = DEFAULT_OUTPUT_DIR
) -> str:
    pattern = f"{service.name}_{tag}_*"
    return (
        f'cd {output_dir} && for f in {pattern}; do [ -f "$f" ] && '
        f'tar -czf "${{f}}.tar.gz" "$f" && rm "$f"; done'
    )


def generate_checksum_command(output_dir: str = DEFAULT_OUTPUT_DIR) -> str:
    return f"cd {output_dir} && shasum -a 256 *.tar.gz > checksums.txt"


def _capitalize(value: str) -> str:
    return value[:1].upper() + value[1:]


def generate_formula_command(
    service: ServiceDescriptor,
    tag: str,
    output_dir: str = DEFAULT_OUTPUT_DIR,
    target: str = "",
) -> str:
    """Script that writes a Ruby formula with per-platform sha256 sums."""
    name = service.name
    project_url = service.homebrew.project_url
    version = tag[1:] if tag.startswith("v") else tag
    target = target or formula_path(service, output_dir)

    sha_lines = []
    for platform in ("darwin_arm64", "darwin_amd64", "linux_arm64", "linux_amd64"):
        var = platform.upper() + "_SHA"
        sha_lines.append(
            f"{var}=$(grep \"{name}_{tag}_{platform}\" {output_dir}/checksums.txt | awk '{{print $1}}')"
        )

    def url(platform: str) -> str:
        return f"{project_url}/releases/download/{tag}/{name}_{tag}_{platform}.tar.gz"

    formula = f"""cat > {target} << FORMULA
class {_capitalize(name)} < Formula
  desc "{service.description}"
  homepage "{project_url}"
  version "{version}"
  license "{service.license}"

  on_macos do
    if Hardware::CPU.arm?
      url "{url('darwin_arm64')}"
      sha256 "$DARWIN_ARM64_SHA"
    else
      url "{url('darwin_amd64')}"
      sha256 "$DARWIN_AMD64_SHA"
    end
  end

  on_linux do
    if Hardware::CPU.arm?
      url "{url('linux_arm64')}"
      sha256 "$LINUX_ARM64_SHA"
    else
      url "{url('linux_amd64')}"
      sha256 "$LINUX_AMD64_SHA"
    end
  end

  def install
    bin.install Dir["{name}_*"].first => "{name}"
  end

  test do
    system "#{{bin}}/{name}", "--version"
  end
end
FORMULA"""
    return "\n".join(sha_lines) + "\n\n" + formula + "\n"


def authenticated_url(url: str, token_env: str) -> str:
    """``https://host/...`` -> ``https://$TOKEN@host/...``; other schemes unchanged."""
    if token_env and url.startswith("https://"):
        return url.replace("https://", f"https://${token_env}@", 1)
    return url


def generate_tap_push_command(
    service: ServiceDescriptor, tag: str, source: str = ""
) -> str:
    """Script that clones the tap, copies the formula in, commits and pushes."""
    name = service.name
    token_env = service.homebrew.token_env
    source = source or formula_path(service)
    clone_url = authenticated_url(service.homebrew.tap_url, token_env)

    lines = []
    if token_env:
        lines += [
            f'if [ -z "${token_env}" ]; then',
            f'  echo "Error: {token_env} environment variable is not set"',
            "  exit 1",
            "fi",
        ]
    lines += [
        "TAP_DIR=$(mktemp -d)",
        'echo "Cloning tap repository..."',
        f'git clone "{clone_url}" "$TAP_DIR" --depth 1',
        'mkdir -p "$TAP_DIR/Formula"',
        f'cp {source} "$TAP_DIR/Formula/{name}.rb"',
        'cd "$TAP_DIR"',
        f'git config user.name "{BOT_NAME}"',
        f'git config user.email "{BOT_NAME}@noreply.local"',
        f"git add Formula/{name}.rb",
        f'git commit -m "Update {name} to {tag}"',
        "git push",
        'rm -rf "$TAP_DIR"',
        'echo "Successfully pushed formula to tap"',
    ]
    return "\n".join(lines) + "\n"
