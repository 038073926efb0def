import argparse
import asyncio
import json
import sys
from pathlib import Path


def _add_repo_root_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


def _load_template(path: Path, title: str | None):
    from invitecanvas.models import DocumentSnapshot, InvitationTemplate  # type: ignore

    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict) and "editor_data" in raw:
        template = InvitationTemplate.model_validate(
            {**raw, "editor_data": DocumentSnapshot.from_json(raw["editor_data"])}
        )
    else:
        template = InvitationTemplate(id=path.stem, editor_data=DocumentSnapshot.from_json(raw))
    if title:
        template.title = title
    return template


async def _run(args: argparse.Namespace) -> int:
    from invitecanvas.config import configure_logging, get_config, reload_config  # type: ignore
    from invitecanvas.pipeline import InvitationPipeline  # type: ignore
    from invitecanvas.storage import load_guests  # type: ignore

    config = reload_config(args.config) if args.config else get_config()
    if args.qr:
        config.qr_service.provider = args.qr
    configure_logging(config)

    template = _load_template(Path(args.template), args.title)
    guests = load_guests(args.guests)
    if not guests:
        print("嘉宾列表为空")
        return 1

    def _on_progress(fraction: float) -> None:
        print(f"\r导出进度: {fraction * 100:5.1f}%", end="", flush=True)

    async with InvitationPipeline.for_template(template, config=config) as pipeline:
        result = await pipeline.export_all(guests, on_progress=_on_progress)
    print()

    summary = result.summary
    print(
        f"状态={result.status.value} 共={summary.total} 成功={summary.sent} "
        f"失败={summary.failed} 跳过={summary.skipped}"
    )
    for outcome in result.outcomes:
        if outcome.error or outcome.flags:
            print(f"  {outcome.guest_name}: {outcome.status.value} {outcome.error or ''} {outcome.flags}")

    if result.archive is None:
        return 1

    out = Path(args.out) if args.out else Path(result.archive_name or "invitations.zip")
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.archive)
    print(f"已写出: {out}")
    return 0 if summary.failed == 0 else 2


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Export personalized invitations for a guest list into a zip archive."
    )
    parser.add_argument("--template", required=True, help="模板JSON（模板记录或画布JSON）")
    parser.add_argument("--guests", required=True, help="嘉宾列表（.csv 或 .json）")
    parser.add_argument("--out", default="", help="输出zip路径（默认：<标题>_invitations.zip）")
    parser.add_argument(
        "--qr",
        choices=["local", "remote"],
        default="",
        help="二维码服务（默认取配置）",
    )
    parser.add_argument("--title", default="", help="覆盖模板标题")
    parser.add_argument("--config", default="", help="运行期配置YAML")
    args = parser.parse_args()

    _add_repo_root_to_path()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
