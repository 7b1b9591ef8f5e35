"""
Initialize the legal knowledge base.

Creates the pgvector schema and loads legal texts through the retriever's
chunk -> embed -> store path. Without --dir a small built-in set of Russian
statute excerpts is loaded.

Usage:
    python init_knowledge_base.py
    python init_knowledge_base.py --dir ~/laws/ --legal-area labor --authority "Государственная Дума РФ"
"""

import sys
import time
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

BUILTIN_DOCUMENTS = [
    {
        "id": "zozpp",
        "title": "Закон РФ «О защите прав потребителей»",
        "legal_area": "consumer_protection",
        "authority": "Государственная Дума РФ",
        "url": "https://www.consultant.ru/document/cons_doc_LAW_305/",
        "content": (
            "Статья 18. Права потребителя при обнаружении в товаре недостатков. "
            "Потребитель в случае обнаружения в товаре недостатков, если они не были "
            "оговорены продавцом, по своему выбору вправе потребовать замены на товар "
            "этой же марки, соразмерного уменьшения покупной цены, незамедлительного "
            "безвозмездного устранения недостатков товара или отказаться от исполнения "
            "договора купли-продажи и потребовать возврата уплаченной за товар суммы.\n\n"
            "Статья 22. Сроки удовлетворения отдельных требований потребителя. "
            "Требования потребителя о соразмерном уменьшении покупной цены товара, "
            "возмещении расходов на исправление недостатков товара, возврате уплаченной "
            "за товар денежной суммы подлежат удовлетворению продавцом в течение десяти "
            "дней со дня предъявления соответствующего требования.\n\n"
            "Статья 25. Право потребителя на обмен товара надлежащего качества. "
            "Потребитель вправе обменять непродовольственный товар надлежащего качества "
            "на аналогичный товар у продавца, у которого этот товар был приобретен, в "
            "течение четырнадцати дней, не считая дня его покупки."
        ),
    },
    {
        "id": "tk_rf",
        "title": "Трудовой кодекс Российской Федерации",
        "legal_area": "labor",
        "authority": "Государственная Дума РФ",
        "url": "https://www.consultant.ru/document/cons_doc_LAW_34683/",
        "content": (
            "Статья 81. Расторжение трудового договора по инициативе работодателя. "
            "Не допускается увольнение работника по инициативе работодателя (за "
            "исключением случая ликвидации организации) в период его временной "
            "нетрудоспособности и в период пребывания в отпуске.\n\n"
            "Статья 136. Порядок, место и сроки выплаты заработной платы. Заработная "
            "плата выплачивается не реже чем каждые полмесяца. Конкретная дата выплаты "
            "устанавливается правилами внутреннего трудового распорядка, коллективным "
            "договором или трудовым договором не позднее 15 календарных дней со дня "
            "окончания периода, за который она начислена.\n\n"
            "Статья 236. Материальная ответственность работодателя за задержку выплаты "
            "заработной платы. При нарушении работодателем установленного срока выплаты "
            "заработной платы работодатель обязан выплатить их с уплатой процентов "
            "(денежной компенсации) в размере не ниже одной сто пятидесятой действующей "
            "ключевой ставки Центрального банка Российской Федерации."
        ),
    },
    {
        "id": "gk_rf",
        "title": "Гражданский кодекс Российской Федерации",
        "legal_area": "civil",
        "authority": "Государственная Дума РФ",
        "url": "https://www.consultant.ru/document/cons_doc_LAW_5142/",
        "content": (
            "Статья 420. Понятие договора. Договором признается соглашение двух или "
            "нескольких лиц об установлении, изменении или прекращении гражданских прав "
            "и обязанностей.\n\n"
            "Статья 432. Основные положения о заключении договора. Договор считается "
            "заключенным, если между сторонами, в требуемой в подлежащих случаях форме, "
            "достигнуто соглашение по всем существенным условиям договора.\n\n"
            "Статья 450. Основания изменения и расторжения договора. Изменение и "
            "расторжение договора возможны по соглашению сторон, если иное не "
            "предусмотрено настоящим Кодексом, другими законами или договором."
        ),
    },
]


def load_directory(input_dir: Path, legal_area: str, authority: str) -> list:
    """One KnowledgeDocument per .txt file; the file stem is the document id."""
    from execution.legal_consult.models import KnowledgeDocument

    documents = []
    for txt_path in sorted(input_dir.glob("*.txt")):
        text = txt_path.read_text(encoding="utf-8", errors="replace").strip()
        if not text:
            logger.warning(f"Skipping empty file: {txt_path.name}")
            continue
        title = text.split("\n", 1)[0].strip()[:200] or txt_path.stem
        documents.append(KnowledgeDocument(
            id=txt_path.stem,
            title=title,
            content=text,
            legal_area=legal_area,
            authority=authority,
        ))
    return documents


def main():
    arg_parser = argparse.ArgumentParser(description="Initialize the legal knowledge base")
    arg_parser.add_argument(
        "--dir",
        type=str,
        default=None,
        help="Directory of .txt legal texts (default: built-in statute excerpts)",
    )
    arg_parser.add_argument(
        "--legal-area",
        type=str,
        default="civil",
        help="Legal area for documents loaded from --dir (default: civil)",
    )
    arg_parser.add_argument(
        "--authority",
        type=str,
        default="unknown",
        help="Issuing authority for documents loaded from --dir",
    )
    args = arg_parser.parse_args()

    from execution.legal_consult.config import ConsultConfig
    from execution.legal_consult.embeddings import get_embedding_service
    from execution.legal_consult.models import KnowledgeDocument, LegalArea
    from execution.legal_consult.retriever import KnowledgeRetriever
    from execution.legal_consult.vector_store import VectorStore, get_vector_store

    try:
        LegalArea(args.legal_area)
    except ValueError:
        logger.error(f"Unknown legal area: {args.legal_area}")
        sys.exit(1)

    if args.dir:
        input_dir = Path(args.dir)
        if not input_dir.exists():
            logger.error(f"Directory not found: {input_dir}")
            sys.exit(1)
        documents = load_directory(input_dir, args.legal_area, args.authority)
        if not documents:
            logger.error(f"No TXT files found in {input_dir}")
            sys.exit(1)
    else:
        documents = [KnowledgeDocument(**d) for d in BUILTIN_DOCUMENTS]

    config = ConsultConfig.from_env()
    store = get_vector_store(config)
    if isinstance(store, VectorStore):
        store.connect()
        store.initialize_schema()
    retriever = KnowledgeRetriever(get_embedding_service(config), store)

    logger.info(f"Loading {len(documents)} documents ({config.embedding_provider}/{config.embedding_model})")

    start_time = time.time()
    total_chunks = 0
    fail_count = 0
    for i, document in enumerate(documents):
        logger.info(f"[{i+1}/{len(documents)}] Processing: {document.id}")
        try:
            n_chunks = retriever.add_document(document)
            total_chunks += n_chunks
            logger.info(f"  -> {n_chunks} chunks")
        except Exception as e:
            fail_count += 1
            logger.error(f"  FAILED: {e}")

    elapsed = time.time() - start_time
    stats = retriever.get_stats()
    store.close()

    # Summary
    print("\n" + "=" * 60)
    print("KNOWLEDGE BASE INITIALIZED")
    print("=" * 60)
    print(f"Documents loaded: {len(documents) - fail_count}/{len(documents)} ({fail_count} failed)")
    print(f"Chunks stored:    {total_chunks}")
    print(f"Time elapsed:     {elapsed:.1f}s")
    print(f"Total documents:  {stats.total_documents}")
    print(f"Total chunks:     {stats.total_chunks}")
    print(f"By legal area:    {stats.legal_areas}")
    print("=" * 60)

    if fail_count:
        sys.exit(1)


if __name__ == "__main__":
    main()
