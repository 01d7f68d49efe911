"""
The :code:`__main__` module is used as an entrypoint when calling the module from the terminal using python -m flag.
It contains a command line interface to the client module.

Its :code:`main()` function is also exported as a console entrypoint.
"""

import logging
from typing import Tuple

try:
    import click
except ImportError as e:
    print(e)
    print("Try using 'pip install python-melsec[cli]'")
    exit()

from melsec import __version__
from melsec.client import Client
from melsec.error import MelsecError
from melsec.frame import FRAME_3E, frame_4e
from melsec.type import ClearMode, DeviceType, ElementWidth

logger = logging.getLogger("Melsec.Cli")

DEVICE = click.Choice([d.name for d in DeviceType], case_sensitive=False)
TYPES = ["word", "dword", "real", "bit"]
WIDTHS = {"word": ElementWidth.WORD, "dword": ElementWidth.DWORD, "real": ElementWidth.FLOAT}
CLEAR_MODES = {"none": ClearMode.NO_CLEAR, "outside-latch": ClearMode.CLEAR_OUTSIDE_LATCH, "all": ClearMode.CLEAR_ALL}


@click.group()
@click.option("-H", "--host", default="127.0.0.1", show_default=True, help="Controller IP address.")
@click.option("-p", "--port", default=5000, show_default=True, help="Controller port.")
@click.option("--tcp", is_flag=True, help="Use TCP instead of UDP.")
@click.option("--frame", type=click.Choice(["3e", "4e"]), default="3e", show_default=True, help="Frame variant.")
@click.option("--timeout", default=2.0, show_default=True, help="Send and receive timeout in seconds.")
@click.option("--network", default=0, show_default=True, help="Network number.")
@click.option("--pc", default=0xFF, show_default=True, help="PC number.")
@click.option("-v", "--verbose", is_flag=True, help="Also print debug-output.")
@click.version_option(__version__)
@click.help_option("-h", "--help")
@click.pass_context
def main(ctx, host, port, tcp, frame, timeout, network, pc, verbose):
    """Talk to a MELSEC controller using the MC protocol."""

    # setup logging
    if verbose:
        logging.basicConfig(format="[%(levelname)s]: %(message)s", level=logging.DEBUG)
    else:
        logging.basicConfig(format="[%(levelname)s]: %(message)s", level=logging.INFO)

    try:
        client = Client(
            host,
            port,
            frame=FRAME_3E if frame == "3e" else frame_4e(),
            use_tcp=tcp,
            send_timeout=timeout,
            receive_timeout=timeout,
        )
        client.network_no = network
        client.pc_no = pc
    except MelsecError as e:
        raise click.BadParameter(str(e))
    ctx.obj = client
    ctx.call_on_close(client.destroy)


def _run(action):
    try:
        return action()
    except MelsecError as e:
        logger.error(e)
        raise click.ClickException(str(e))


@main.command()
@click.argument("device", type=DEVICE)
@click.argument("point", type=int)
@click.option("-n", "--count", default=1, show_default=True, help="Number of elements.")
@click.option("-t", "--type", "type_", type=click.Choice(TYPES), default="word", show_default=True)
@click.pass_obj
def read(client: Client, device: str, point: int, count: int, type_: str):
    """Read COUNT elements starting at DEVICE POINT."""
    device_type = DeviceType[device.upper()]
    if type_ == "bit":
        values = _run(lambda: client.read_bits(point, device_type, count))
    else:
        values = _run(lambda: client.batch_read(point, device_type, count, WIDTHS[type_]))
    for offset, value in enumerate(values):
        click.echo(f"{device_type.name}{point + offset}\t{value}")


@main.command()
@click.argument("device", type=DEVICE)
@click.argument("point", type=int)
@click.argument("values", nargs=-1, required=True)
@click.option("-t", "--type", "type_", type=click.Choice(TYPES), default="word", show_default=True)
@click.pass_obj
def write(client: Client, device: str, point: int, values: Tuple[str, ...], type_: str):
    """Write VALUES starting at DEVICE POINT."""
    device_type = DeviceType[device.upper()]
    try:
        if type_ == "bit":
            states = [v.lower() in ("1", "true", "on") for v in values]
        elif type_ == "real":
            numbers = [float(v) for v in values]
        else:
            numbers = [int(v, 0) for v in values]
    except ValueError as e:
        raise click.BadParameter(str(e))
    if type_ == "bit":
        _run(lambda: client.write_bits(point, states, device_type))
    else:
        _run(lambda: client.batch_write(point, numbers, device_type, WIDTHS[type_]))
    click.echo(f"Wrote {len(values)} value(s) to {device_type.name}{point}")


@main.command("cpu-model")
@click.pass_obj
def cpu_model(client: Client):
    """Print the CPU model name."""
    click.echo(_run(client.read_cpu_model_name))


@main.command()
@click.option("--forced", is_flag=True, help="Execute even if another device holds the remote STOP/PAUSE.")
@click.option("--clear-mode", type=click.Choice(list(CLEAR_MODES)), default="none", show_default=True)
@click.pass_obj
def run(client: Client, forced: bool, clear_mode: str):
    """Remote RUN."""
    _run(lambda: client.run(forced, CLEAR_MODES[clear_mode]))


@main.command()
@click.option("--forced", is_flag=True, help="Execute even if another device holds the remote STOP/PAUSE.")
@click.pass_obj
def pause(client: Client, forced: bool):
    """Remote PAUSE."""
    _run(lambda: client.pause(forced))


@main.command()
@click.pass_obj
def stop(client: Client):
    """Remote STOP."""
    _run(client.stop)


@main.command()
@click.pass_obj
def reset(client: Client):
    """Remote RESET."""
    _run(client.reset)


@main.command("latch-clear")
@click.pass_obj
def latch_clear(client: Client):
    """Remote latch clear."""
    _run(client.latch_clear)


@main.command("clear-error-led")
@click.pass_obj
def clear_error_led(client: Client):
    """Turn off the COM.ERR LED."""
    _run(client.clear_error_led)


if __name__ == "__main__":
    main()
