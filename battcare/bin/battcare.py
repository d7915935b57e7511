#!/usr/bin/env python3
#
# battcare - battery charge thresholds and recalibration for ThinkPads

import sys

import click

from battcare import core
from battcare.batteries import show_batteries_info
from battcare.config.config import CONFIG
from battcare.globals import VERSION
from battcare.modules.locator import DEFAULT
from battcare.modules.system_info import SystemInfo
from battcare.prints import print_info_block
from battcare.tools import root_check, setup_logger

@click.command()
@click.option("--info", is_flag=True, help="Show battery backends, thresholds and battery data")
@click.option("--setcharge", nargs=2, type=str, default=None, metavar="START STOP", help="Set charge thresholds, 0 selects the factory default")
@click.option("--fullcharge", is_flag=True, help="Restore factory default thresholds to charge to 100%")
@click.option("--apply", is_flag=True, help="Apply the thresholds from the config file to all batteries")
@click.option("--watch", is_flag=True, help="Apply the config file and re-apply it whenever it changes")
@click.option("--discharge", is_flag=True, help="Discharge the battery even when AC power is connected")
@click.option("--recalibrate", is_flag=True, help="Full charge thresholds, then discharge for recalibration")
@click.option("--battery", default=DEFAULT, show_default=True, help="Battery to operate on, e.g. BAT0 or BAT1")
@click.option("--config", is_flag=False, required=False, help="Use config file at defined path")
@click.option("--verbose", is_flag=True, help="Log every step")
@click.option("--debug", is_flag=True, help="Show debug info (include when submitting bugs)")
@click.option("--version", is_flag=True, help="Show currently installed version")
def main(info, setcharge, fullcharge, apply, watch, discharge, recalibrate, battery, config, verbose, debug, version):
    setup_logger(verbose)

    if version:
        print(f"battcare {VERSION}")
        return

    CONFIG.setup(config, auto_reload=watch)

    if len(sys.argv) == 1:
        click.echo(click.get_current_context().get_help())
        return

    if debug:
        print_info_block("System", *(f"{key}: {value}" for key, value in SystemInfo.distro_info()))
        show_batteries_info(core.detect())
    elif info:
        show_batteries_info(core.detect())
    elif setcharge:
        root_check()
        sys.exit(core.setcharge(core.detect(), *setcharge, selector=battery, verbose=verbose))
    elif fullcharge:
        root_check()
        sys.exit(core.fullcharge(core.detect(), selector=battery, verbose=verbose))
    elif apply:
        root_check()
        sys.exit(core.apply_config(core.detect(), verbose=verbose))
    elif watch:
        root_check()
        core.watch(verbose=verbose)
    elif discharge:
        root_check()
        sys.exit(core.discharge_exit_code(core.discharge(core.detect(), selector=battery)))
    elif recalibrate:
        root_check()
        sys.exit(core.recalibrate(core.detect(), selector=battery, verbose=verbose))

if __name__ == "__main__": main()
