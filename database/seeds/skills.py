"""
Skill taxonomy seed data.

Idempotent: skills whose canonical name already exists are skipped.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from core.exceptions import ProviderError
from database.models import SkillCategory
from database.repositories.skill import SkillRepository

logger = logging.getLogger(__name__)

SEED_ALIAS_CONFIDENCE = 9

COMMON_SKILLS: List[Dict] = [
    # Programming languages
    {'canonical_name': 'JavaScript', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 9,
     'description': 'JavaScript programming language for web development',
     'aliases': ['JS', 'Javascript', 'ECMAScript', 'ES6', 'ES2015', 'ES2020']},
    {'canonical_name': 'TypeScript', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 8,
     'description': 'TypeScript programming language with static typing',
     'aliases': ['TS', 'Typescript']},
    {'canonical_name': 'Python', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 9,
     'description': 'Python programming language',
     'aliases': ['py', 'Python3', 'Python 3']},
    {'canonical_name': 'Java', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 8,
     'description': 'Java programming language',
     'aliases': ['OpenJDK', 'Oracle Java', 'Java SE', 'Java EE']},
    {'canonical_name': 'C#', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 7,
     'description': "Microsoft's C# programming language",
     'aliases': ['C Sharp', 'CSharp', '.NET', 'dotnet']},
    {'canonical_name': 'Go', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 7,
     'description': 'Go programming language (Golang)',
     'aliases': ['Golang']},
    {'canonical_name': 'Rust', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 6,
     'description': 'Rust programming language',
     'aliases': ['rustlang']},
    {'canonical_name': 'PHP', 'category': SkillCategory.PROGRAMMING_LANGUAGE, 'priority': 7,
     'description': 'PHP programming language for the web',
     'aliases': ['PHP7', 'PHP8']},

    # Frameworks
    {'canonical_name': 'React', 'category': SkillCategory.FRAMEWORK, 'priority': 9,
     'description': 'JavaScript library for building user interfaces',
     'aliases': ['React.js', 'ReactJS']},
    {'canonical_name': 'Next.js', 'category': SkillCategory.FRAMEWORK, 'priority': 8,
     'description': 'React framework for production',
     'aliases': ['NextJS', 'next']},
    {'canonical_name': 'Vue.js', 'category': SkillCategory.FRAMEWORK, 'priority': 7,
     'description': 'Progressive JavaScript framework',
     'aliases': ['Vue', 'VueJS', 'Vue 3']},
    {'canonical_name': 'Angular', 'category': SkillCategory.FRAMEWORK, 'priority': 7,
     'description': 'TypeScript-based web application framework',
     'aliases': ['AngularJS', 'Angular 2+', 'ng']},
    {'canonical_name': 'Node.js', 'category': SkillCategory.FRAMEWORK, 'priority': 9,
     'description': 'JavaScript runtime for server-side development',
     'aliases': ['NodeJS', 'node']},
    {'canonical_name': 'Express.js', 'category': SkillCategory.FRAMEWORK, 'priority': 8,
     'description': 'Web framework for Node.js',
     'aliases': ['Express', 'ExpressJS']},
    {'canonical_name': 'NestJS', 'category': SkillCategory.FRAMEWORK, 'priority': 7,
     'description': 'Node.js framework for scalable server-side applications',
     'aliases': ['Nest.js', 'Nest']},
    {'canonical_name': 'Spring Boot', 'category': SkillCategory.FRAMEWORK, 'priority': 8,
     'description': 'Java framework for microservices',
     'aliases': ['Spring', 'SpringBoot', 'spring-boot']},
    {'canonical_name': 'Django', 'category': SkillCategory.FRAMEWORK, 'priority': 7,
     'description': 'Python web framework',
     'aliases': ['Django REST', 'DRF']},
    {'canonical_name': 'FastAPI', 'category': SkillCategory.FRAMEWORK, 'priority': 6,
     'description': 'Modern Python web framework',
     'aliases': ['fast-api']},
    {'canonical_name': 'Laravel', 'category': SkillCategory.FRAMEWORK, 'priority': 6,
     'description': 'PHP web framework',
     'aliases': []},

    # Databases
    {'canonical_name': 'PostgreSQL', 'category': SkillCategory.DATABASE, 'priority': 8,
     'description': 'Open-source relational database',
     'aliases': ['Postgres', 'pg', 'psql']},
    {'canonical_name': 'MySQL', 'category': SkillCategory.DATABASE, 'priority': 8,
     'description': 'Relational database management system',
     'aliases': ['MySQL 8', 'MariaDB']},
    {'canonical_name': 'MongoDB', 'category': SkillCategory.DATABASE, 'priority': 7,
     'description': 'NoSQL document database',
     'aliases': ['mongo', 'Mongo DB']},
    {'canonical_name': 'Redis', 'category': SkillCategory.DATABASE, 'priority': 7,
     'description': 'In-memory data structure store',
     'aliases': ['Redis Cache']},
    {'canonical_name': 'Elasticsearch', 'category': SkillCategory.DATABASE, 'priority': 6,
     'description': 'Distributed search and analytics engine',
     'aliases': ['elastic search', 'ES']},

    # Cloud platforms
    {'canonical_name': 'AWS', 'category': SkillCategory.CLOUD_PLATFORM, 'priority': 9,
     'description': 'Amazon Web Services cloud platform',
     'aliases': ['Amazon Web Services', 'Amazon AWS']},
    {'canonical_name': 'Google Cloud', 'category': SkillCategory.CLOUD_PLATFORM, 'priority': 7,
     'description': 'Google Cloud Platform',
     'aliases': ['GCP', 'Google Cloud Platform']},
    {'canonical_name': 'Microsoft Azure', 'category': SkillCategory.CLOUD_PLATFORM, 'priority': 7,
     'description': 'Microsoft Azure cloud platform',
     'aliases': ['Azure', 'MS Azure']},

    # Tools
    {'canonical_name': 'Docker', 'category': SkillCategory.TOOL, 'priority': 8,
     'description': 'Containerization platform',
     'aliases': ['Docker Compose', 'docker-compose']},
    {'canonical_name': 'Kubernetes', 'category': SkillCategory.TOOL, 'priority': 7,
     'description': 'Container orchestration platform',
     'aliases': ['k8s']},
    {'canonical_name': 'Git', 'category': SkillCategory.TOOL, 'priority': 9,
     'description': 'Version control system',
     'aliases': ['GitHub', 'GitLab', 'Bitbucket']},
    {'canonical_name': 'Jenkins', 'category': SkillCategory.TOOL, 'priority': 6,
     'description': 'CI/CD automation server',
     'aliases': []},

    # Methodologies
    {'canonical_name': 'Agile', 'category': SkillCategory.METHODOLOGY, 'priority': 8,
     'description': 'Agile software development methodology',
     'aliases': ['Scrum', 'Kanban']},
    {'canonical_name': 'DevOps', 'category': SkillCategory.METHODOLOGY, 'priority': 7,
     'description': 'Development and operations practices',
     'aliases': ['Dev Ops', 'CI/CD', 'CICD']},

    # Soft skills
    {'canonical_name': 'Team Leadership', 'category': SkillCategory.SOFT_SKILL, 'priority': 8,
     'description': 'Ability to lead a team',
     'aliases': ['Leadership', 'Team Lead', 'Tech Lead', 'Engineering Manager']},
    {'canonical_name': 'Problem Solving', 'category': SkillCategory.SOFT_SKILL, 'priority': 8,
     'description': 'Ability to analyse and solve problems',
     'aliases': ['Problem-solving', 'Analytical Thinking', 'Critical Thinking']},
    {'canonical_name': 'Communication', 'category': SkillCategory.SOFT_SKILL, 'priority': 8,
     'description': 'Communication skills',
     'aliases': ['English Communication', 'Presentation', 'Documentation']},
]


def seed_skills(repo: SkillRepository, embedding_client=None, skills: Optional[List[Dict]] = None) -> Dict[str, int]:
    """
    Insert the common skill taxonomy.

    Args:
        repo: Skill repository (caller owns the transaction)
        embedding_client: Optional EmbeddingClient; when given, each skill gets
            a name + description embedding for semantic matching
        skills: Override seed data (defaults to COMMON_SKILLS)

    Returns:
        Counts of created/skipped skills and created aliases
    """
    created, skipped, aliases_created = 0, 0, 0

    for data in skills or COMMON_SKILLS:
        name = data['canonical_name']
        if repo.get_by_canonical_name(name):
            logger.info(f"Skill '{name}' already exists, skipping")
            skipped += 1
            continue

        embedding = None
        if embedding_client is not None:
            try:
                embedding = embedding_client.embed(f"{name} {data.get('description') or ''}".strip()).vector
            except ProviderError as e:
                logger.warning(f"Could not embed skill '{name}': {e}")

        try:
            with repo.db.begin_nested():
                skill = repo.create_skill(
                    canonical_name=name,
                    category=SkillCategory(data['category']).value,
                    description=data.get('description'),
                    priority=data.get('priority', 5),
                    embedding=embedding,
                    metadata={'seeded': True, 'seed_date': datetime.now(timezone.utc).isoformat()},
                )
                seen = {name.lower()}
                for alias_name in data.get('aliases', []):
                    if alias_name.lower() in seen:
                        continue
                    seen.add(alias_name.lower())
                    repo.create_alias(
                        skill_id=skill.skill_id,
                        alias_name=alias_name,
                        confidence=SEED_ALIAS_CONFIDENCE,
                        context='Common industry alias',
                    )
                    aliases_created += 1
        except IntegrityError as e:
            logger.error(f"Failed to create skill '{name}': {e}")
            continue

        created += 1
        logger.info(f"Created skill: {name} with {len(data.get('aliases', []))} aliases")

    logger.info(f"Skill seeding completed: {created} created, {skipped} skipped")
    return {'created': created, 'skipped': skipped, 'aliases_created': aliases_created}
