"""balance.defaults

Built-in balance tables. Same numbers the shipped game uses; a CSV export
can replace the upgrade list via balance.parsing.load_upgrades_csv().
"""

from __future__ import annotations

from functools import lru_cache
from typing import Tuple

from .parsing import upgrades_from_csv_text
from .schemas import (
    AchievementDef,
    BalanceTable,
    LevelCurve,
    ProjectArchetype,
    ProjectTuning,
    StageTable,
    UnlockRule,
    validate_balance_table,
)

DEFAULT_UPGRADES_CSV = """\
upgrade_id,category,name,currency_type,base_price,price_multiplier,effect_type,effect_value,max_level,unlock_condition,description
keyboard_practice,skills,Keyboard Practice,experience,10,1.15,exp_per_click,1,50,none,Type faster: more experience per click
debugging_basics,skills,Debugging Basics,experience,100,1.18,exp_multiplier,1.1,25,level_3,Spend less time chasing bugs
design_patterns,skills,Design Patterns,experience,1500,1.2,all_multiplier,1.05,20,upgrade_debugging_basics,Cleaner code for everything you do
second_monitor,equipment,Second Monitor,money,50,1.15,money_per_click,1,50,level_10,Ship more per click
mechanical_keyboard,equipment,Mechanical Keyboard,money,250,1.17,critical_chance,0.01,20,level_12,Lucky keystrokes happen more often
build_server,equipment,Build Server,money,1000,1.2,auto_exp,2,0,stage_2,Compiles while you sleep
junior_developer,team,Junior Developer,money,500,1.15,auto_money,1,0,level_10,Earns money on their own
junior_developer,team,Junior Developer,money,500,1.15,auto_exp,1,0,level_10,Earns money on their own
marketing_intern,team,Marketing Intern,money,2500,1.2,money_multiplier,1.1,25,stage_2,Better store pages sell more copies
lead_programmer,team,Lead Programmer,money,20000,1.25,critical_multiplier,0.5,10,stage_3;upgrade_junior_developer,Turns lucky clicks into breakthroughs
"""

DEFAULT_PROJECTS: Tuple[ProjectArchetype, ...] = (
    ProjectArchetype(
        name="Simple Mobile Game",
        description="A basic tap-to-play mobile game",
        icon="📱",
        difficulty="easy",
        reward_multiplier=1.0,
        min_stage=1,
    ),
    ProjectArchetype(
        name="Indie Platformer",
        description="A 2D platformer with retro graphics",
        icon="🎮",
        difficulty="medium",
        reward_multiplier=1.5,
        min_stage=2,
    ),
    ProjectArchetype(
        name="VR Experience",
        description="An immersive virtual reality application",
        icon="🥽",
        difficulty="hard",
        reward_multiplier=2.5,
        min_stage=4,
    ),
    ProjectArchetype(
        name="AI Game Assistant",
        description="An AI-powered game companion",
        icon="🤖",
        difficulty="expert",
        reward_multiplier=4.0,
        min_stage=5,
    ),
)

DEFAULT_UNLOCK_RULES: Tuple[UnlockRule, ...] = (
    UnlockRule(
        feature="money",
        title="First Sale!",
        description="Your game is selling! You now earn money from development!",
        required_level=10,
    ),
    UnlockRule(
        feature="project_system",
        title="Project System",
        description="Complete projects for big money rewards!",
        required_stage=2,
    ),
    UnlockRule(
        feature="ad_revenue",
        title="Advertisement Revenue",
        description="Earn passive income from ads in your games!",
        required_level=15,
        required_stage=2,
    ),
    UnlockRule(
        feature="investment_events",
        title="Investment Opportunities",
        description="Investors are interested in funding your projects!",
        required_level=25,
        required_stage=3,
    ),
    UnlockRule(
        feature="team_management",
        title="Team Management",
        description="Hire and manage a team of developers!",
        required_level=30,
        required_stage=3,
    ),
)


DEFAULT_ACHIEVEMENTS: Tuple[AchievementDef, ...] = (
    # clicks
    AchievementDef("first_click", "First Click", "click", 1, "Make your first click", exp_reward=10),
    AchievementDef("click_100", "Clicker", "click", 100, "Click 100 times", exp_reward=100),
    AchievementDef(
        "click_1000", "Dedicated Clicker", "click", 1000, "Click 1,000 times",
        rarity="uncommon", money_reward=500, exp_reward=1000,
    ),
    AchievementDef(
        "click_10000", "Click Master", "click", 10000, "Click 10,000 times",
        rarity="rare", money_reward=5000, exp_reward=10000,
    ),
    # money
    AchievementDef(
        "money_unlock", "First Sale", "feature", 0, "Unlock money generation",
        money_reward=100, feature="money",
    ),
    AchievementDef("money_1000", "Thousand-aire", "money", 1000, "Earn 1,000 money total", rarity="uncommon", exp_reward=500),
    AchievementDef(
        "money_1m", "Millionaire", "money", 1_000_000, "Earn 1,000,000 money total",
        rarity="rare", multiplier_reward=0.1, reward_description="+10% All Income",
    ),
    # experience
    AchievementDef("exp_10000", "Experience Gatherer", "experience", 10000, "Earn 10,000 experience total", money_reward=1000),
    AchievementDef(
        "exp_1m", "Experience Master", "experience", 1_000_000, "Earn 1,000,000 experience total",
        rarity="epic", multiplier_reward=0.05, multiplier_key="exp", reward_description="+5% Experience",
    ),
    # levels
    AchievementDef("level_10", "Rising Developer", "level", 10, "Reach level 10", money_reward=500, exp_reward=500),
    AchievementDef(
        "level_50", "Veteran Developer", "level", 50, "Reach level 50",
        rarity="rare", money_reward=5000, exp_reward=5000,
    ),
    AchievementDef(
        "level_100", "Legendary Developer", "level", 100, "Reach level 100",
        rarity="legendary", multiplier_reward=0.2, reward_description="+20% All Income",
    ),
    # stages
    AchievementDef("stage_2", "Indie Studio", "stage", 2, "Reach stage 2", money_reward=1000, exp_reward=2000),
    AchievementDef(
        "stage_5", "Growing Studio", "stage", 5, "Reach stage 5",
        rarity="rare", money_reward=10000, exp_reward=20000,
    ),
    AchievementDef(
        "stage_10", "Game Empire", "stage", 10, "Reach stage 10",
        rarity="legendary", multiplier_reward=0.5, reward_description="+50% All Income",
    ),
    # projects
    AchievementDef("project_1", "Shipped It", "project", 1, "Complete your first project", money_reward=500),
    AchievementDef(
        "project_10", "Prolific Developer", "project", 10, "Complete 10 projects",
        rarity="uncommon", money_reward=5000, exp_reward=2500,
    ),
    AchievementDef(
        "project_100", "Project Machine", "project", 100, "Complete 100 projects",
        rarity="epic", multiplier_reward=0.15, multiplier_key="money", reward_description="+15% Money",
    ),
    # upgrades
    AchievementDef("upgrade_1", "First Investment", "upgrade", 1, "Buy your first upgrade", exp_reward=100),
    AchievementDef(
        "upgrade_25", "Well Equipped", "upgrade", 25, "Buy 25 upgrades",
        rarity="uncommon", money_reward=2500, exp_reward=2500,
    ),
    # play time
    AchievementDef("play_1h", "Getting Started", "play_time", 3600, "Play for 1 hour", exp_reward=1000),
    AchievementDef(
        "play_10h", "Dedicated Player", "play_time", 36000, "Play for 10 hours",
        rarity="uncommon", money_reward=10000, exp_reward=10000,
    ),
    # special
    AchievementDef(
        "special_speedrun", "Speed Runner", "speedrun", 5, "Reach stage 5 in under 1 hour",
        rarity="epic", multiplier_reward=0.25, multiplier_key="exp", reward_description="+25% Experience",
    ),
    AchievementDef(
        "special_perfect_week", "Perfect Week", "streak", 7, "Play for 7 consecutive days",
        rarity="rare", money_reward=50000, exp_reward=50000,
    ),
)


@lru_cache(maxsize=1)
def default_balance() -> BalanceTable:
    table = BalanceTable(
        level_curve=LevelCurve(base_experience=100.0, growth=1.5),
        stages=StageTable(),
        upgrades=upgrades_from_csv_text(DEFAULT_UPGRADES_CSV),
        projects=DEFAULT_PROJECTS,
        project_tuning=ProjectTuning(),
        unlock_rules=DEFAULT_UNLOCK_RULES,
        achievements=DEFAULT_ACHIEVEMENTS,
    )
    validate_balance_table(table)
    return table
