#!/usr/bin/env python3
"""
战斗系统 - 开发测试CLI工具

直接调用服务层的交互式命令行工具，无需启动HTTP服务器。
Uses the in-memory store and the bundled catalog.

使用方式:
    cd backend
    python play_cli.py [player_name]
    python play_cli.py --seed 42
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

# 添加项目根目录到路径
sys.path.insert(0, str(Path(__file__).parent))

try:
    from rich.box import ROUNDED, SIMPLE
    from rich.console import Console
    from rich.panel import Panel
    from rich.prompt import Prompt
    from rich.table import Table
except ImportError:
    print("需要安装 rich 库: pip install rich")
    sys.exit(1)

from realm.combat.dice import DiceRoller
from realm.combat.models.combat_result import ActionResult
from realm.config import settings
from realm.models.catalog import GameCatalog
from realm.models.player import Inventory, InventorySlot, PlayerLocation, PlayerState, SkillRecord
from realm.services import (
    DungeonService,
    EncounterService,
    MemoryDocumentStore,
    PlayerLocks,
    PlayerRepository,
)


# ==================== 配置 ====================

PLAYER_ID = "cli_player"

COLORS = {
    "player": "bright_green",
    "monster": "bright_red",
    "system": "bright_magenta",
    "error": "bright_red",
    "hint": "dim",
    "reward": "bright_yellow",
}


def starter_player(name: str) -> PlayerState:
    return PlayerState(
        player_id=PLAYER_ID,
        name=name,
        hp=30,
        max_hp=30,
        energy=100,
        max_energy=100,
        skills={
            "attack": SkillRecord(level=5, xp=1800),
            "strength": SkillRecord(level=5, xp=1800),
            "defense": SkillRecord(level=5, xp=1800),
            "hitpoints": SkillRecord(level=10, xp=17100),
        },
        location=PlayerLocation(type="town", id="riverbend", kingdom_id="valdoria", biome="forest"),
    )


def starter_inventory() -> Inventory:
    return Inventory(
        player_id=PLAYER_ID,
        slots=[
            InventorySlot(slot_id="slot_1", item_id="bronze_dagger", equipped=True),
            InventorySlot(slot_id="slot_2", item_id="leather_vest", equipped=True),
            InventorySlot(slot_id="slot_3", item_id="bread", quantity=5),
            InventorySlot(slot_id="slot_4", item_id="trout", quantity=3),
        ],
        next_slot_seq=4,
    )


# ==================== 显示渲染 ====================

class CombatRenderer:
    """战斗界面渲染器"""

    def __init__(self):
        self.console = Console()

    def print_banner(self):
        self.console.print(Panel("Realm Combat - 开发测试工具", style="bold bright_blue"))

    def print_help(self):
        help_text = """
[bold]战斗命令:[/bold]
  monsters            列出可战斗的怪物
  fight <monster> [n] 开始战斗（n = 攻击风格序号）
  attack / a          攻击一回合
  eat <item>          进食
  flee                逃跑
  log                 查看当前战斗日志

[bold]地牢命令:[/bold]
  dungeons            列出可进入的地牢
  enter <dungeon> [n] 进入地牢
  next                与下一只怪物战斗
  descend             前往下一层
  dine <item>         在地牢中进食
  abandon             放弃地牢
  loot / claim <id>   查看 / 领取战利品仓库
  claimall [kingdom]  领取某王国的全部战利品

[bold]其他:[/bold]
  status  food  help  quit
"""
        self.console.print(Panel(help_text, title="帮助", border_style="green"))

    def print_error(self, message: str):
        self.console.print(f"[{COLORS['error']}]✗ {message}[/{COLORS['error']}]")

    def print_system(self, message: str):
        self.console.print(f"[{COLORS['system']}]{message}[/{COLORS['system']}]")

    def print_hint(self, message: str):
        self.console.print(f"[{COLORS['hint']}]{message}[/{COLORS['hint']}]")

    def print_result(self, result: ActionResult):
        if result.rejected:
            self.print_error(result.message)
            return
        color = COLORS["player"] if result.success else COLORS["error"]
        status = f" [{result.status}]" if result.status else ""
        self.console.print(f"[{color}]{result.message}{status}[/{color}]")

        log = result.data.get("log") or []
        if log:
            self.print_log(log)
        for key in ("rewards", "combat_rewards", "total_rewards", "completion_bonus"):
            if key in result.data:
                self.console.print(f"[{COLORS['reward']}]{key}: {result.data[key]}[/{COLORS['reward']}]")
        if "combat" in result.data:
            combat = result.data["combat"]
            self.print_hint(
                f"{result.data.get('monster', '?')}: {combat['rounds']} rounds, "
                f"dealt {combat['damage_dealt']}, took {combat['damage_taken']}"
            )

    def print_log(self, entries: List[Dict[str, Any]]):
        table = Table(box=SIMPLE, show_header=True)
        table.add_column("#", style="dim")
        table.add_column("回合")
        table.add_column("行动者")
        table.add_column("行动")
        table.add_column("结果")
        table.add_column("HP (你/怪)")
        for entry in entries:
            actor_color = COLORS["player"] if entry["actor"] == "player" else COLORS["monster"]
            if entry["action"] == "eat":
                outcome = f"+{entry['hp_restored']} HP"
            elif entry["action"] == "flee":
                outcome = "escaped" if entry["hit"] else "failed"
            else:
                outcome = f"hit {entry['damage']}" if entry["hit"] else "miss"
            table.add_row(
                str(entry["seq"]),
                str(entry["round"]),
                f"[{actor_color}]{entry['actor']}[/{actor_color}]",
                entry["action"],
                outcome,
                f"{entry['player_hp_after']} / {entry['monster_hp_after']}",
            )
        self.console.print(table)

    def print_rows(self, title: str, rows: List[Dict[str, Any]], columns: List[str]):
        if not rows:
            self.print_hint(f"({title}: 无)")
            return
        table = Table(title=title, box=ROUNDED)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*[str(row.get(column, "")) for column in columns])
        self.console.print(table)

    def print_status(self, info: Dict[str, Any]):
        stats = info["player_stats"]
        table = Table(title="角色状态", box=ROUNDED, show_header=False)
        table.add_row("HP", f"{stats['hp']}/{stats['max_hp']}")
        table.add_row("战斗等级", str(stats["combat_level"]))
        table.add_row("攻/力/防", f"{stats['attack']}/{stats['strength']}/{stats['defense']}")
        table.add_row("体力", str(info["energy"]["current"]))
        table.add_row("武器", f"{info['weapon_subtype']} ({info['weapon_speed']['class']})")
        table.add_row("装备加成", str(info["equipment"]))
        table.add_row("战斗中", "是" if info["in_combat"] else "否")
        self.console.print(table)
        self.print_rows("攻击风格", info["attack_styles"], ["index", "name", "attack_type", "weapon_style", "xp_skills"])


# ==================== 主类 ====================

class CombatCLI:
    """战斗CLI主类（直接服务调用）"""

    def __init__(self, player_name: str, seed: int = None):
        store = MemoryDocumentStore()
        catalog = GameCatalog.load(settings.catalog_path)
        locks = PlayerLocks()
        dice = DiceRoller(seed=seed)
        self.repository = PlayerRepository(store)
        self.repository.create_player(starter_player(player_name), starter_inventory())
        self.encounters = EncounterService(store, catalog, locks=locks, dice=dice)
        self.dungeons = DungeonService(store, catalog, locks=locks, dice=dice)
        self.renderer = CombatRenderer()
        self.running = True

    async def main_loop(self):
        self.renderer.print_banner()
        self.renderer.print_hint("输入 help 查看命令")
        while self.running:
            try:
                user_input = Prompt.ask("[green]>[/green]")
            except (KeyboardInterrupt, EOFError):
                break
            if not user_input.strip():
                continue
            try:
                await self.handle_input(user_input.strip())
            except Exception as e:
                self.renderer.print_error(f"发生错误: {type(e).__name__}: {e}")
        self.renderer.print_system("再见!")

    async def handle_input(self, user_input: str):
        parts = user_input.split()
        cmd, args = parts[0].lower(), parts[1:]
        style = int(args[1]) if len(args) > 1 and args[1].isdigit() else 0

        if cmd in ("quit", "exit", "q"):
            self.running = False
        elif cmd == "help":
            self.renderer.print_help()
        elif cmd == "status":
            self.renderer.print_status(await self.encounters.get_combat_info(PLAYER_ID))
        elif cmd == "food":
            self.renderer.print_rows("食物", await self.encounters.get_available_food(PLAYER_ID), ["item_id", "name", "hp_bonus", "quantity"])
        elif cmd == "monsters":
            monsters = await self.encounters.get_available_monsters(PLAYER_ID)
            self.renderer.print_rows("怪物", monsters, ["monster_id", "name", "combat_level", "max_hp", "type"])
        elif cmd == "fight" and args:
            self.renderer.print_result(await self.encounters.start_combat(PLAYER_ID, args[0], style))
        elif cmd in ("attack", "a"):
            self.renderer.print_result(await self.encounters.attack(PLAYER_ID))
        elif cmd == "eat" and args:
            self.renderer.print_result(await self.encounters.eat(PLAYER_ID, args[0]))
        elif cmd == "flee":
            self.renderer.print_result(await self.encounters.flee(PLAYER_ID))
        elif cmd == "log":
            self.renderer.print_log(await self.encounters.get_combat_log(PLAYER_ID))
        elif cmd == "dungeons":
            dungeons = await self.dungeons.get_available_dungeons(PLAYER_ID)
            self.renderer.print_rows("地牢", dungeons, ["dungeon_id", "name", "min_combat_level", "energy_cost"])
        elif cmd == "enter" and args:
            self.renderer.print_result(await self.dungeons.enter_dungeon(PLAYER_ID, args[0], style))
        elif cmd == "next":
            self.renderer.print_result(await self.dungeons.fight_monster(PLAYER_ID))
        elif cmd == "descend":
            self.renderer.print_result(await self.dungeons.next_floor(PLAYER_ID))
        elif cmd == "dine" and args:
            self.renderer.print_result(await self.dungeons.eat_food(PLAYER_ID, args[0]))
        elif cmd == "abandon":
            self.renderer.print_result(await self.dungeons.abandon_dungeon(PLAYER_ID))
        elif cmd == "loot":
            loot = await self.dungeons.get_player_loot(PLAYER_ID)
            self.renderer.print_rows("战利品仓库", loot, ["entry_id", "item_id", "quantity", "expires_at"])
        elif cmd == "claim" and args:
            self.renderer.print_result(await self.dungeons.claim_loot(PLAYER_ID, args[0]))
        elif cmd == "claimall":
            kingdom_id = args[0] if args else self.repository.get_player(PLAYER_ID).location.kingdom_id
            self.renderer.print_result(await self.dungeons.claim_all_loot(PLAYER_ID, kingdom_id or ""))
        else:
            self.renderer.print_hint("未知命令，输入 help 查看帮助")


# ==================== 入口 ====================

async def main():
    """主入口"""
    import argparse

    parser = argparse.ArgumentParser(description="Realm Combat - 开发测试CLI")
    parser.add_argument("player_name", nargs="?", default="Adventurer", help="角色名")
    parser.add_argument("--seed", type=int, default=None, help="随机种子")
    args = parser.parse_args()

    cli = CombatCLI(player_name=args.player_name, seed=args.seed)
    await cli.main_loop()


if __name__ == "__main__":
    asyncio.run(main())
